"""
Constants for the resource group cost collector.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""

# =============================================================================
# Cost Query Settings
# =============================================================================

COST_QUERY_TYPE = "ActualCost"
COST_QUERY_TIMEFRAME = "MonthToDate"
COST_AGGREGATION_NAME = "totalCost"
COST_AGGREGATION_COLUMN = "Cost"
COST_AGGREGATION_FUNCTION = "Sum"
COST_GROUPING_TYPE = "Dimension"
COST_GROUPING_DIMENSION = "ResourceId"

# =============================================================================
# Row Parsing
# =============================================================================

DEFAULT_CURRENCY = "USD"
KNOWN_CURRENCIES = frozenset({"USD", "EUR", "GBP", "INR", "JPY", "CAD", "AUD"})

# Digits with at most one decimal point, nothing else
COST_FIELD_PATTERN = r"^[0-9]+\.?[0-9]*$"
CURRENCY_FIELD_PATTERN = r"^[A-Z]{3}$"
RESOURCE_PATH_PREFIX = "/subscriptions/"

UNKNOWN_RESOURCE_TYPE = "Unknown"

# =============================================================================
# Reporting
# =============================================================================

DEFAULT_TOP_RESOURCES = 10

# =============================================================================
# Export
# =============================================================================

DETAILED_COSTS_FILENAME = "azure_detailed_costs.csv"
RG_SUMMARY_FILENAME = "azure_rg_summary.csv"

# =============================================================================
# Azure Subscription States
# =============================================================================

SUBSCRIPTION_STATE_ENABLED = "Enabled"
