"""Configuration loading for the runbooks.

Values live as Automation account variables when running inside Azure
Automation, or as environment variables for local runs. Every runbook reads
its full set of names once at startup and builds a frozen config object that
is passed explicitly to the code that needs it.
"""
import json
import logging
import os
from dataclasses import dataclass

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.mgmt.automation import AutomationClient

from automation_watch.errors import ConfigurationError, InventoryError


logger = logging.getLogger(__name__)


WEBHOOK_WATCH_VARIABLES = (
    "SubscriptionId",
    "ExpiryThreshold",
    "To",
    "SendGraphMailResourceGroupName",
    "SendGraphMailAutomationAccountName",
)

MAIL_SENDER_VARIABLES = (
    "KeyVaultName",
    "SecretName",
    "TransactionalMailAppId",
    "TenantId",
    "From",
    "ExpirationWarningAddress",
)


class EnvironmentVariableStore:
    """Reads configuration names straight from the process environment."""

    def __init__(self, environ=None):
        self.environ = os.environ if environ is None else environ

    def get(self, name):
        value = self.environ.get(name)
        if value is None or value == "":
            return None
        return value


class AutomationVariableStore:
    """Reads Automation account variables through the management API.

    The service stores variable values JSON-encoded, so a string variable
    ``foo`` comes back as ``'"foo"'``. Encrypted variables are never returned
    by the management API and are reported as unreadable.
    """

    def __init__(self, credential, subscription_id, resource_group, account_name, client=None):
        self.resource_group = resource_group
        self.account_name = account_name
        self.client = client or AutomationClient(credential, subscription_id)

    def get(self, name):
        try:
            variable = self.client.variable.get(self.resource_group, self.account_name, name)
        except ResourceNotFoundError:
            return None
        except HttpResponseError as e:
            raise InventoryError(f"Could not read automation variable '{name}': {e.message}") from e

        if variable.is_encrypted:
            raise ConfigurationError(
                f"Automation variable '{name}' is encrypted and cannot be read through the management API"
            )
        if variable.value is None:
            return None

        try:
            value = json.loads(variable.value)
        except ValueError:
            value = variable.value
        if value is None or value == "":
            return None
        return str(value)


def default_store(credential, environ=None):
    """Pick the Automation variable store when the account is known, else the environment."""
    environ = os.environ if environ is None else environ
    subscription_id = environ.get("AUTOMATION_SUBSCRIPTION_ID")
    resource_group = environ.get("AUTOMATION_RESOURCE_GROUP")
    account_name = environ.get("AUTOMATION_ACCOUNT_NAME")

    if subscription_id and resource_group and account_name:
        logger.info(f"Reading configuration from automation account {resource_group}/{account_name}")
        return AutomationVariableStore(credential, subscription_id, resource_group, account_name)

    logger.info("Reading configuration from environment variables")
    return EnvironmentVariableStore(environ)


def load_variables(store, names):
    """Read every name from the store, failing on the first run with anything missing."""
    values = {}
    missing = []
    for name in names:
        value = store.get(name)
        if value is None:
            missing.append(name)
        else:
            values[name] = value

    if missing:
        raise ConfigurationError(f"Missing required configuration values: {', '.join(missing)}")
    return values


def _parse_int(name, value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Configuration value '{name}' must be an integer, got '{value}'") from None


@dataclass(frozen=True)
class WebhookWatchConfig:
    subscription_id: str
    expiry_threshold: int
    to: str
    mail_resource_group: str
    mail_account_name: str

    @classmethod
    def load(cls, store):
        values = load_variables(store, WEBHOOK_WATCH_VARIABLES)
        return cls(
            subscription_id=values["SubscriptionId"],
            expiry_threshold=_parse_int("ExpiryThreshold", values["ExpiryThreshold"]),
            to=values["To"],
            mail_resource_group=values["SendGraphMailResourceGroupName"],
            mail_account_name=values["SendGraphMailAutomationAccountName"],
        )


@dataclass(frozen=True)
class MailSenderConfig:
    key_vault_name: str
    secret_name: str
    app_id: str
    tenant_id: str
    sender: str
    expiration_warning_address: str

    @classmethod
    def load(cls, store):
        values = load_variables(store, MAIL_SENDER_VARIABLES)
        return cls(
            key_vault_name=values["KeyVaultName"],
            secret_name=values["SecretName"],
            app_id=values["TransactionalMailAppId"],
            tenant_id=values["TenantId"],
            sender=values["From"],
            expiration_warning_address=values["ExpirationWarningAddress"],
        )
