"""
Resource group cost collector shared library.
"""
from . import constants
from .aggregator import CostAggregator
from .export import (
    ExportChoice,
    ExportTarget,
    export_targets,
    parse_export_choice,
    prompt_export_choice,
    run_exports,
)
from .models import (
    CollectionResult,
    CostReport,
    GroupFailure,
    ParsedRow,
    ResourceCost,
    ResourceGroupSummary,
    ResourceTypeAggregate,
)
from .parser import classify_resource, parse_cost_row, row_to_resource_cost
from .report import (
    build_report,
    grand_total,
    print_report,
    summary_by_group,
    top_resources,
    totals_by_type,
)
from .utils import (
    ProgressTracker,
    RowParseError,
    SessionError,
    generate_run_id,
    get_timestamp,
    is_auth_error,
    setup_logging,
    write_csv,
    write_json,
)

__all__ = [
    'constants',
    # Models
    'CollectionResult',
    'CostReport',
    'GroupFailure',
    'ParsedRow',
    'ResourceCost',
    'ResourceGroupSummary',
    'ResourceTypeAggregate',
    # Pipeline
    'CostAggregator',
    'classify_resource',
    'parse_cost_row',
    'row_to_resource_cost',
    'build_report',
    'grand_total',
    'print_report',
    'summary_by_group',
    'top_resources',
    'totals_by_type',
    # Export
    'ExportChoice',
    'ExportTarget',
    'export_targets',
    'parse_export_choice',
    'prompt_export_choice',
    'run_exports',
    # Utils
    'ProgressTracker',
    'RowParseError',
    'SessionError',
    'generate_run_id',
    'get_timestamp',
    'is_auth_error',
    'setup_logging',
    'write_csv',
    'write_json',
]
