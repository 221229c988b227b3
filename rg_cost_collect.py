#!/usr/bin/env python3
"""
Azure Resource Group Cost Collector

Queries Azure Cost Management for every resource group in a subscription,
totals month-to-date cost per resource and per resource group, and prints
the most expensive groups, resources and resource types.

Usage:
    # Default subscription, prompt for CSV export
    python3 rg_cost_collect.py

    # Specific subscription, export both CSV files without prompting
    python3 rg_cost_collect.py --subscription-id xxx --export both

    # Show top 25 resources and also write JSON output
    python3 rg_cost_collect.py --top 25 --json --output ./reports
"""
import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from azure.mgmt.costmanagement import CostManagementClient
from azure.mgmt.costmanagement.models import (
    QueryAggregation,
    QueryDataset,
    QueryDefinition,
    QueryGrouping,
)

from rgcost.aggregator import CostAggregator
from rgcost.config import generate_sample_config, load_settings
from rgcost.constants import (
    COST_AGGREGATION_COLUMN,
    COST_AGGREGATION_FUNCTION,
    COST_AGGREGATION_NAME,
    COST_GROUPING_DIMENSION,
    COST_GROUPING_TYPE,
    COST_QUERY_TIMEFRAME,
    COST_QUERY_TYPE,
    DEFAULT_CURRENCY,
    DEFAULT_TOP_RESOURCES,
)
from rgcost.export import parse_export_choice, prompt_export_choice, run_exports
from rgcost.models import CollectionResult, CostReport, GroupFailure
from rgcost.parser import row_to_resource_cost
from rgcost.report import build_report, print_report
from rgcost.session import get_credential, get_current_subscription_id, list_resource_groups
from rgcost.utils import (
    ProgressTracker,
    SessionError,
    generate_run_id,
    get_timestamp,
    is_auth_error,
    setup_logging,
    write_json,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Cost Management Query
# =============================================================================

def build_scope(subscription_id: str, resource_group: str) -> str:
    """Cost Management scope for a single resource group."""
    return f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"


def build_cost_query() -> QueryDefinition:
    """Month-to-date actual cost, summed and broken out per resource ID."""
    return QueryDefinition(
        type=COST_QUERY_TYPE,
        timeframe=COST_QUERY_TIMEFRAME,
        dataset=QueryDataset(
            aggregation={
                COST_AGGREGATION_NAME: QueryAggregation(
                    name=COST_AGGREGATION_COLUMN,
                    function=COST_AGGREGATION_FUNCTION,
                )
            },
            grouping=[
                QueryGrouping(type=COST_GROUPING_TYPE, name=COST_GROUPING_DIMENSION)
            ],
        ),
    )


def query_resource_group_costs(cost_client, scope: str) -> List[Sequence[Any]]:
    """
    Run the cost query for one scope.

    Returns:
        The raw result rows (empty list if Azure returned nothing)
    """
    result = cost_client.query.usage(scope=scope, parameters=build_cost_query())
    if result is None or result.rows is None:
        return []
    return list(result.rows)


# =============================================================================
# Collection
# =============================================================================

def collect_resource_group(
    cost_client,
    subscription_id: str,
    resource_group: str,
    aggregator: CostAggregator,
) -> int:
    """
    Query and aggregate the costs of one resource group.

    Malformed rows are logged and skipped. A summary is recorded only when
    the query returned at least one row.

    Returns:
        Number of rows returned by the query
    """
    rows = query_resource_group_costs(cost_client, build_scope(subscription_id, resource_group))
    if not rows:
        logger.info(f"No cost data for resource group {resource_group}")
        return 0

    currency = DEFAULT_CURRENCY
    for row in rows:
        try:
            resource_cost = row_to_resource_cost(resource_group, row)
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed row in {resource_group}: {e}")
            continue

        if resource_cost is None:
            continue

        aggregator.add_resource(resource_group, resource_cost)
        currency = resource_cost.currency

    aggregator.finalize_group(
        resource_group,
        len(rows),
        aggregator.running_total(resource_group),
        currency,
    )
    logger.info(f"Collected {len(rows)} cost row(s) for resource group {resource_group}")
    return len(rows)


def collect_costs(
    cost_client,
    subscription_id: str,
    resource_groups: Sequence[Dict],
    aggregator: Optional[CostAggregator] = None,
    tracker: Optional[ProgressTracker] = None,
) -> CollectionResult:
    """
    Collect month-to-date costs for each resource group, one at a time.

    A failed query is recorded against its resource group and collection
    moves on to the next group.

    Args:
        cost_client: CostManagementClient
        subscription_id: Azure subscription ID
        resource_groups: Resource groups as ``{'name': ...}`` dicts, in enumeration order
        aggregator: Aggregator to fill; reset before use (default: a new one)
        tracker: Optional progress tracker

    Returns:
        CollectionResult holding the aggregator and any failures
    """
    if aggregator is None:
        aggregator = CostAggregator()
    else:
        aggregator.reset()

    result = CollectionResult(subscription_id=subscription_id, aggregator=aggregator)

    for group in resource_groups:
        name = group['name']
        if tracker:
            tracker.start_group(name)

        try:
            row_count = collect_resource_group(cost_client, subscription_id, name, aggregator)
        except Exception as e:
            if is_auth_error(e):
                logger.error(f"Authentication/authorization error for resource group {name}: {e}")
                logger.error("Check that you have Cost Management Reader access on this resource group.")
            else:
                logger.error(f"Failed to query costs for resource group {name}: {e}")
            result.failures.append(GroupFailure(resource_group=name, error=str(e)))
            if tracker:
                tracker.complete_group(failed=True)
            continue

        if row_count == 0:
            result.empty_groups.append(name)
        if tracker:
            tracker.complete_group(rows=row_count)

    if result.failures:
        logger.warning(f"Cost query failed for {len(result.failures)} resource group(s)")

    return result


# =============================================================================
# Output
# =============================================================================

def write_json_outputs(result: CollectionResult, report: CostReport, output_dir: str) -> List[str]:
    """Write the detailed inventory and the report summary as JSON."""
    os.makedirs(output_dir, exist_ok=True)
    file_ts = datetime.now(timezone.utc).strftime('%H%M%S')

    output_data = {
        'run_id': result.run_id,
        'timestamp': result.timestamp,
        'provider': 'azure',
        'subscription': result.subscription_id,
        'timeframe': COST_QUERY_TIMEFRAME,
        'resource_count': len(result.aggregator.resources),
        'resources': [r.to_dict() for r in result.aggregator.resources],
    }

    summary_data = {
        'run_id': result.run_id,
        'timestamp': result.timestamp,
        'provider': 'azure',
        'timeframe': COST_QUERY_TIMEFRAME,
        'empty_resource_groups': result.empty_groups,
        **report.to_dict(),
    }

    inventory_path = os.path.join(output_dir, f"rgcost_inv_{file_ts}.json")
    summary_path = os.path.join(output_dir, f"rgcost_sum_{file_ts}.json")
    write_json(output_data, inventory_path)
    write_json(summary_data, summary_path)
    return [inventory_path, summary_path]


# =============================================================================
# Main
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Azure Resource Group Cost Collector - month-to-date cost per resource group',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default subscription, choose export interactively
  python3 rg_cost_collect.py

  # Specific subscription, write both CSV files
  python3 rg_cost_collect.py --subscription-id xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx --export both

  # Write a sample config file
  python3 rg_cost_collect.py --generate-config > rgcost-config.yaml
"""
    )

    parser.add_argument('--subscription-id', help='Azure subscription ID (default: first enabled subscription)')
    parser.add_argument('-o', '--output', help='Output directory for exports and logs (default: .)')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--top', type=int,
                        help=f'Number of most expensive resources to show (default: {DEFAULT_TOP_RESOURCES})')
    parser.add_argument('--export', choices=['detailed', 'summary', 'both', 'skip'],
                        help='Export CSV files without prompting')
    parser.add_argument('--json', action='store_true', help='Also write JSON inventory and summary files')
    parser.add_argument('--config', help='Path to YAML config file')
    parser.add_argument('--generate-config', action='store_true', help='Print a sample config file and exit')
    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        print(generate_sample_config())
        return

    try:
        settings = load_settings(args)
    except (FileNotFoundError, ValueError) as e:
        parser.error(str(e))

    setup_logging(settings.log_level, output_dir=settings.output)

    # Session is a precondition: nothing is enumerated without one
    try:
        credential = get_credential()
        subscription_id = get_current_subscription_id(credential, settings.subscription)
    except SessionError as e:
        logger.error(str(e))
        logger.error("Check your Azure credentials are configured correctly (az login).")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Failed to authenticate with Azure: {e}")
        sys.exit(1)

    try:
        resource_groups = list_resource_groups(credential, subscription_id)
    except Exception as e:
        logger.error(f"Failed to list resource groups: {e}")
        logger.error("Check your credentials have Reader access on the subscription.")
        sys.exit(1)

    if not resource_groups:
        logger.warning("No resource groups found in subscription")

    cost_client = CostManagementClient(credential)

    with ProgressTracker("Azure Cost", total_groups=len(resource_groups)) as tracker:
        result = collect_costs(cost_client, subscription_id, resource_groups, tracker=tracker)

    result.run_id = generate_run_id()
    result.timestamp = get_timestamp()

    report = build_report(result.aggregator, subscription_id, settings.top, result.failures)
    print(f"\nRun ID: {result.run_id}")
    print_report(report)

    if args.json:
        write_json_outputs(result, report, settings.output)

    if settings.export:
        choice = parse_export_choice(settings.export)
    else:
        choice = prompt_export_choice()
    run_exports(choice, result.aggregator, settings.output)


if __name__ == '__main__':
    main()
