"""
Data models for the resource group cost collector.
"""
from dataclasses import asdict, dataclass, field, fields
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List

from .constants import DEFAULT_CURRENCY

if TYPE_CHECKING:
    from .aggregator import CostAggregator


@dataclass(frozen=True)
class ParsedRow:
    """Typed fields pulled out of one untyped cost query row."""
    cost: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    resource_path: str = ""


@dataclass(frozen=True)
class ResourceCost:
    """
    Month-to-date cost of a single resource.
    """
    resource_group: str
    resource: str
    resource_type: str
    cost: Decimal
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


@dataclass(frozen=True)
class ResourceGroupSummary:
    """Aggregated cost of one resource group."""
    resource_group: str
    resource_count: int
    total_cost: Decimal
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


@dataclass(frozen=True)
class ResourceTypeAggregate:
    """Cost totals for all resources sharing a resource type."""
    resource_type: str
    total_cost: Decimal
    resource_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GroupFailure:
    """A resource group whose cost query failed."""
    resource_group: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CollectionResult:
    """Outcome of querying every resource group in a subscription."""
    subscription_id: str
    aggregator: "CostAggregator"
    failures: List[GroupFailure] = field(default_factory=list)
    empty_groups: List[str] = field(default_factory=list)
    run_id: str = ""
    timestamp: str = ""

    @property
    def groups_with_costs(self) -> int:
        return len(self.aggregator.summaries)


@dataclass
class CostReport:
    """
    All report views for one collection run.
    """
    subscription_id: str
    groups: List[ResourceGroupSummary] = field(default_factory=list)
    top_resources: List[ResourceCost] = field(default_factory=list)
    by_type: List[ResourceTypeAggregate] = field(default_factory=list)
    grand_total: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    failures: List[GroupFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def field_names(model) -> List[str]:
    """Return the attribute names of a model class, in declaration order."""
    return [f.name for f in fields(model)]
