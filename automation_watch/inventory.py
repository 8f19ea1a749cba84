"""Enumerates automation accounts and their webhooks.

Enumeration is two lazy stages: accounts, then the webhooks of each account.
Both stages pull pages from the management API as they are consumed, so an
error partway through ends the run instead of leaving a partial listing.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from azure.core.exceptions import HttpResponseError

from automation_watch.errors import InventoryError
from automation_watch.expiry import parse_timestamp


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchedResource:
    name: str
    account_name: str
    resource_group: str
    subscription_id: str
    expires_at: datetime
    last_used_at: Optional[datetime] = None
    runbook_name: Optional[str] = None


def resource_group_from_id(resource_id):
    """Pull the resource group out of an ARM resource id."""
    parts = resource_id.strip("/").split("/")
    for i, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[i + 1]
    raise InventoryError(f"No resource group in resource id '{resource_id}'")


def iter_automation_accounts(client):
    """Yield (resource_group, account) for every account the identity can see."""
    try:
        for account in client.automation_account.list():
            yield resource_group_from_id(account.id), account
    except HttpResponseError as e:
        raise InventoryError(f"Listing automation accounts failed: {e.message}") from e


def iter_account_webhooks(client, subscription_id, resource_group, account_name):
    try:
        for webhook in client.webhook.list_by_automation_account(resource_group, account_name):
            if webhook.expiry_time is None:
                logger.warning(f"Webhook {webhook.name} in {resource_group}/{account_name} has no expiry time, skipping")
                continue

            runbook = getattr(webhook, "runbook", None)
            yield WatchedResource(
                name=webhook.name,
                account_name=account_name,
                resource_group=resource_group,
                subscription_id=subscription_id,
                expires_at=parse_timestamp(webhook.expiry_time),
                last_used_at=parse_timestamp(webhook.last_invoked_time) if webhook.last_invoked_time else None,
                runbook_name=runbook.name if runbook is not None else None,
            )
    except HttpResponseError as e:
        raise InventoryError(f"Listing webhooks for {resource_group}/{account_name} failed: {e.message}") from e


def iter_webhooks(client, subscription_id, stats=None):
    """Yield a WatchedResource for every webhook in every automation account."""
    for resource_group, account in iter_automation_accounts(client):
        logger.info(f"Checking automation account: {resource_group}/{account.name}")
        if stats is not None:
            stats["accounts"] += 1
        yield from iter_account_webhooks(client, subscription_id, resource_group, account.name)
