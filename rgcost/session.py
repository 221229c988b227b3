"""
Azure session, subscription and resource group lookup.
"""
import logging
from typing import Dict, List, Optional

from azure.identity import DefaultAzureCredential
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.subscription import SubscriptionClient

from .constants import SUBSCRIPTION_STATE_ENABLED
from .utils import SessionError

logger = logging.getLogger(__name__)


def get_credential():
    """Get Azure credential. In Cloud Shell, uses managed identity; locally, `az login`."""
    return DefaultAzureCredential()


def get_subscriptions(credential) -> List[Dict]:
    """Get all accessible subscriptions."""
    subscription_client = SubscriptionClient(credential)
    subscriptions = []

    for sub in subscription_client.subscriptions.list():
        subscriptions.append({
            'id': sub.subscription_id,
            'name': sub.display_name,
            'state': str(sub.state) if sub.state is not None else '',
        })

    return subscriptions


def _is_enabled(subscription: Dict) -> bool:
    # SDK enums stringify as either "Enabled" or "SubscriptionState.ENABLED"
    state = subscription.get('state', '')
    return state.lower().endswith(SUBSCRIPTION_STATE_ENABLED.lower())


def get_current_subscription_id(credential, requested: Optional[str] = None) -> str:
    """
    Resolve the subscription to report on.

    Args:
        credential: Azure credential
        requested: Explicit subscription ID; must be accessible to the credential

    Returns:
        The subscription ID

    Raises:
        SessionError: If subscriptions cannot be listed or none is usable
    """
    try:
        subscriptions = get_subscriptions(credential)
    except Exception as e:
        raise SessionError(f"Failed to list Azure subscriptions: {e}") from e

    if not subscriptions:
        raise SessionError("No Azure subscriptions found. Run 'az login' or check permissions.")

    if requested:
        for sub in subscriptions:
            if sub['id'] == requested:
                return sub['id']
        raise SessionError(f"Subscription {requested} not found or not accessible")

    enabled = [s for s in subscriptions if _is_enabled(s)]
    if not enabled:
        raise SessionError("No enabled Azure subscriptions found")

    chosen = enabled[0]
    logger.info(f"Using subscription: {chosen['name']} ({chosen['id']})")
    return chosen['id']


def list_resource_groups(credential, subscription_id: str) -> List[Dict]:
    """List resource groups in a subscription, in the order Azure returns them."""
    resource_client = ResourceManagementClient(credential, subscription_id)
    groups = [{'name': rg.name} for rg in resource_client.resource_groups.list()]
    logger.info(f"Found {len(groups)} resource group(s)")
    return groups
