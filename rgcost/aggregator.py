"""
Per-run cost aggregation.

A CostAggregator is created for each collection run. It keeps the flat list
of resource costs and one summary per resource group that returned rows.
Both collections are append-only.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Tuple

from .constants import DEFAULT_CURRENCY
from .models import ResourceCost, ResourceGroupSummary

logger = logging.getLogger(__name__)


class CostAggregator:
    """Accumulates resource costs and resource group totals for one run."""

    def __init__(self):
        self._resources: List[ResourceCost] = []
        self._summaries: List[ResourceGroupSummary] = []
        self._running_totals: Dict[str, Decimal] = {}

    @property
    def resources(self) -> Tuple[ResourceCost, ...]:
        return tuple(self._resources)

    @property
    def summaries(self) -> Tuple[ResourceGroupSummary, ...]:
        return tuple(self._summaries)

    def reset(self) -> None:
        """Drop all collected state."""
        self._resources = []
        self._summaries = []
        self._running_totals = {}

    def running_total(self, resource_group: str) -> Decimal:
        return self._running_totals.get(resource_group, Decimal("0"))

    def add_resource(self, resource_group: str, resource_cost: ResourceCost) -> Decimal:
        """
        Record a resource cost and add it to its group's running total.

        Returns:
            The group's running total after this resource
        """
        self._resources.append(resource_cost)
        total = self.running_total(resource_group) + resource_cost.cost
        self._running_totals[resource_group] = total
        return total

    def finalize_group(
        self,
        resource_group: str,
        row_count: int,
        running_total: Decimal,
        currency: str = DEFAULT_CURRENCY,
    ) -> ResourceGroupSummary:
        """Emit the summary for a resource group once all its rows are processed."""
        summary = ResourceGroupSummary(
            resource_group=resource_group,
            resource_count=row_count,
            total_cost=running_total,
            currency=currency,
        )
        self._summaries.append(summary)
        logger.debug(f"Finalized {resource_group}: {row_count} rows, total {running_total} {currency}")
        return summary
