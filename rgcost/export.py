"""
CSV export of collected costs.

The user's export selection is modelled as an ExportChoice; turning a choice
into files to write is a pure mapping (``export_targets``) kept separate from
the terminal prompt.
"""
import logging
import os
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .aggregator import CostAggregator
from .constants import DETAILED_COSTS_FILENAME, RG_SUMMARY_FILENAME
from .models import ResourceCost, ResourceGroupSummary, field_names
from .report import summary_by_group
from .utils import write_csv

logger = logging.getLogger(__name__)


class ExportChoice(Enum):
    DETAILED = 1
    SUMMARY = 2
    BOTH = 3
    SKIP = 4


class ExportTarget(Enum):
    DETAILED = DETAILED_COSTS_FILENAME
    SUMMARY = RG_SUMMARY_FILENAME


_TARGETS = {
    ExportChoice.DETAILED: (ExportTarget.DETAILED,),
    ExportChoice.SUMMARY: (ExportTarget.SUMMARY,),
    ExportChoice.BOTH: (ExportTarget.DETAILED, ExportTarget.SUMMARY),
    ExportChoice.SKIP: (),
}

# Accepted names for --export / config, in addition to the menu numbers
_CHOICE_NAMES = {
    'detailed': ExportChoice.DETAILED,
    'summary': ExportChoice.SUMMARY,
    'both': ExportChoice.BOTH,
    'skip': ExportChoice.SKIP,
}


def parse_export_choice(text: Optional[str]) -> ExportChoice:
    """
    Map user input to an ExportChoice.

    Accepts the menu numbers 1-4 or the choice names; anything else
    (including empty input) means SKIP.
    """
    if text is None:
        return ExportChoice.SKIP
    value = str(text).strip().lower()
    if value in _CHOICE_NAMES:
        return _CHOICE_NAMES[value]
    if value.isdigit():
        for choice in ExportChoice:
            if choice.value == int(value):
                return choice
    return ExportChoice.SKIP


def export_targets(choice: ExportChoice) -> Tuple[ExportTarget, ...]:
    """Files to write for a given choice."""
    return _TARGETS[choice]


def print_export_menu() -> None:
    print("\nExport results to CSV?\n")
    print(f"  1) Detailed resource costs  ({DETAILED_COSTS_FILENAME})")
    print(f"  2) Resource group summary   ({RG_SUMMARY_FILENAME})")
    print("  3) Both")
    print("  4) Skip")
    print()


def prompt_export_choice(input_func: Optional[Callable[[str], str]] = None) -> ExportChoice:
    """Ask the user which files to export."""
    input_func = input_func or input
    print_export_menu()
    try:
        answer = input_func("Enter choice (1-4): ")
    except (KeyboardInterrupt, EOFError):
        print()
        return ExportChoice.SKIP
    return parse_export_choice(answer)


def export_resource_costs(resources: Sequence[ResourceCost], filepath: str) -> None:
    write_csv([r.to_dict() for r in resources], filepath, fieldnames=field_names(ResourceCost))


def export_group_summaries(summaries: Sequence[ResourceGroupSummary], filepath: str) -> None:
    write_csv([s.to_dict() for s in summaries], filepath, fieldnames=field_names(ResourceGroupSummary))


def run_exports(choice: ExportChoice, aggregator: CostAggregator, output_dir: str = '.') -> List[str]:
    """
    Write the files selected by ``choice``.

    Args:
        choice: The user's export selection
        aggregator: Finished aggregator for the run
        output_dir: Directory the CSV files are written to

    Returns:
        Paths of the files written
    """
    targets = export_targets(choice)
    if not targets:
        logger.info("Export skipped")
        return []

    os.makedirs(output_dir, exist_ok=True)
    written = []
    for target in targets:
        filepath = os.path.join(output_dir, target.value)
        if target is ExportTarget.DETAILED:
            export_resource_costs(aggregator.resources, filepath)
        else:
            export_group_summaries(summary_by_group(aggregator.summaries), filepath)
        written.append(filepath)

    logger.info(f"Exported {len(written)} file(s) to {output_dir}")
    return written
