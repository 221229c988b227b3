"""
Report views over collected resource costs and console presentation.

The view functions are pure: they take the aggregator's collections and
return new sorted lists. ``print_report`` renders a CostReport with rich.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .aggregator import CostAggregator
from .constants import DEFAULT_CURRENCY, DEFAULT_TOP_RESOURCES
from .models import (
    CostReport,
    GroupFailure,
    ResourceCost,
    ResourceGroupSummary,
    ResourceTypeAggregate,
)
from .utils import format_cost


# =============================================================================
# Views
# =============================================================================

def summary_by_group(summaries: Iterable[ResourceGroupSummary]) -> List[ResourceGroupSummary]:
    """Resource group summaries, most expensive first (ties keep enumeration order)."""
    return sorted(summaries, key=lambda s: s.total_cost, reverse=True)


def top_resources(resources: Iterable[ResourceCost], n: int = DEFAULT_TOP_RESOURCES) -> List[ResourceCost]:
    """The ``n`` most expensive resources across all resource groups."""
    if n <= 0:
        return []
    return sorted(resources, key=lambda r: r.cost, reverse=True)[:n]


def totals_by_type(resources: Iterable[ResourceCost]) -> List[ResourceTypeAggregate]:
    """Total cost and resource count per resource type, most expensive first."""
    totals: Dict[str, Decimal] = {}
    counts: Dict[str, int] = {}

    for resource in resources:
        totals[resource.resource_type] = totals.get(resource.resource_type, Decimal("0")) + resource.cost
        counts[resource.resource_type] = counts.get(resource.resource_type, 0) + 1

    aggregates = [
        ResourceTypeAggregate(resource_type=t, total_cost=totals[t], resource_count=counts[t])
        for t in totals
    ]
    return sorted(aggregates, key=lambda a: a.total_cost, reverse=True)


def grand_total(summaries: Iterable[ResourceGroupSummary]) -> Decimal:
    """Sum of all resource group totals (0 when nothing was returned)."""
    return sum((s.total_cost for s in summaries), Decimal("0"))


def build_report(
    aggregator: CostAggregator,
    subscription_id: str = "",
    top_n: int = DEFAULT_TOP_RESOURCES,
    failures: Optional[Sequence[GroupFailure]] = None,
) -> CostReport:
    """Assemble every report view for a finished run."""
    summaries = aggregator.summaries
    currency = summaries[0].currency if summaries else DEFAULT_CURRENCY

    return CostReport(
        subscription_id=subscription_id,
        groups=summary_by_group(summaries),
        top_resources=top_resources(aggregator.resources, top_n),
        by_type=totals_by_type(aggregator.resources),
        grand_total=grand_total(summaries),
        currency=currency,
        failures=list(failures or []),
    )


# =============================================================================
# Presentation
# =============================================================================

def _cost_table(title: str, columns: List[str]) -> Table:
    table = Table(title=title, title_justify="left")
    for i, column in enumerate(columns):
        if i == len(columns) - 1:
            table.add_column(column, justify="right", style="green")
        elif column in ("Resources", "Count"):
            table.add_column(column, justify="right")
        else:
            table.add_column(column, style="cyan" if i == 0 else None)
    return table


def print_report(report: CostReport, console: Optional[Console] = None) -> None:
    """Print the group summary, top resources, type totals and grand total."""
    console = console or Console()

    if not report.groups:
        console.print("[yellow]No cost data returned for any resource group.[/yellow]")
    else:
        groups = _cost_table("Cost by Resource Group", ["Resource Group", "Resources", "Total Cost"])
        for s in report.groups:
            groups.add_row(s.resource_group, str(s.resource_count), format_cost(s.total_cost, s.currency))
        console.print(groups)

        top = _cost_table(
            f"Top {len(report.top_resources)} Most Expensive Resources",
            ["Resource", "Type", "Resource Group", "Cost"],
        )
        for r in report.top_resources:
            top.add_row(r.resource, r.resource_type, r.resource_group, format_cost(r.cost, r.currency))
        console.print(top)

        by_type = _cost_table("Cost by Resource Type", ["Resource Type", "Count", "Total Cost"])
        for a in report.by_type:
            by_type.add_row(a.resource_type, str(a.resource_count), format_cost(a.total_cost, report.currency))
        console.print(by_type)

    console.print(
        f"\n[bold]Grand Total (month to date):[/bold] "
        f"[bold green]{format_cost(report.grand_total, report.currency)}[/bold green]"
    )

    if report.failures:
        lines = [f"[red]{escape(f.resource_group)}[/red]: {escape(f.error)}" for f in report.failures]
        console.print(Panel("\n".join(lines), title=f"{len(report.failures)} resource group(s) failed"))
