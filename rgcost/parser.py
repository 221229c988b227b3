"""
Cost query row parsing and resource classification.

Cost Management returns each row as an untyped list (e.g. ``[12.5,
'/subscriptions/.../virtualMachines/vm1', 'USD']``) whose column order is not
guaranteed. Fields are therefore classified by shape, not by position:

- digits with at most one decimal point -> cost (parsed as Decimal)
- a known currency code, or any three uppercase letters -> currency
- anything starting with ``/subscriptions/`` -> resource path

When several fields share a shape the last one wins.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence, Tuple

from .constants import (
    COST_FIELD_PATTERN,
    CURRENCY_FIELD_PATTERN,
    DEFAULT_CURRENCY,
    KNOWN_CURRENCIES,
    RESOURCE_PATH_PREFIX,
    UNKNOWN_RESOURCE_TYPE,
)
from .models import ParsedRow, ResourceCost
from .utils import RowParseError

logger = logging.getLogger(__name__)

_COST_RE = re.compile(COST_FIELD_PATTERN)
_CURRENCY_RE = re.compile(CURRENCY_FIELD_PATTERN)


def _parse_cost(value: str) -> Decimal:
    try:
        return Decimal(value)
    except (InvalidOperation, ValueError) as e:
        raise RowParseError(f"Invalid cost value {value!r}: {e}") from e


def is_cost_field(value: str) -> bool:
    """Check if a field looks like a non-negative decimal amount."""
    return bool(_COST_RE.match(value))


def is_currency_field(value: str) -> bool:
    """Check if a field looks like an ISO currency code."""
    return value in KNOWN_CURRENCIES or bool(_CURRENCY_RE.match(value))


def is_resource_path_field(value: str) -> bool:
    """Check if a field looks like an Azure resource ID."""
    return value.startswith(RESOURCE_PATH_PREFIX)


def parse_cost_row(row: Sequence[Any]) -> ParsedRow:
    """
    Classify the fields of one cost query row.

    Args:
        row: Untyped fields from ``QueryResult.rows``

    Returns:
        ParsedRow; fields without a match keep their defaults
        (cost 0, currency USD, empty resource path)

    Raises:
        RowParseError: If a cost-shaped field cannot be parsed
    """
    cost = Decimal("0")
    currency = DEFAULT_CURRENCY
    resource_path = ""

    for item in row:
        value = str(item)
        if is_cost_field(value):
            cost = _parse_cost(value)
        elif is_currency_field(value):
            currency = value
        elif is_resource_path_field(value):
            resource_path = value

    return ParsedRow(cost=cost, currency=currency, resource_path=resource_path)


def classify_resource(resource_path: str) -> Tuple[str, str]:
    """
    Derive a resource name and type label from a resource ID.

    For ``/subscriptions/s/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/vm1``
    this returns ``('vm1', 'Microsoft.Compute/virtualMachines')``.

    The type is simply the two segments before the name, so nested child
    resources (e.g. ``.../servers/sql1/databases/db1``) get a label such as
    ``sql1/databases`` rather than a real provider namespace.
    """
    parts = [p for p in resource_path.split('/') if p]
    if not parts:
        return resource_path, UNKNOWN_RESOURCE_TYPE

    name = parts[-1]
    if len(parts) < 3:
        return name, UNKNOWN_RESOURCE_TYPE

    return name, f"{parts[-3]}/{parts[-2]}"


def row_to_resource_cost(resource_group: str, row: Sequence[Any]) -> Optional[ResourceCost]:
    """
    Parse a row into a ResourceCost.

    Returns None when the row carries no resource path, since the cost
    cannot be attributed to anything.
    """
    parsed = parse_cost_row(row)
    if not parsed.resource_path:
        logger.debug(f"Row in {resource_group} has no resource ID, ignoring: {row}")
        return None

    name, resource_type = classify_resource(parsed.resource_path)
    return ResourceCost(
        resource_group=resource_group,
        resource=name,
        resource_type=resource_type,
        cost=parsed.cost,
        currency=parsed.currency,
    )
