"""Fatal error categories raised by the runbooks."""


class AutomationWatchError(Exception):
    """Base class for every error that aborts a run."""


class ConfigurationError(AutomationWatchError):
    """A required configuration value is missing or unreadable."""


class AuthenticationError(AutomationWatchError):
    """Managed identity login or token acquisition failed."""


class InventoryError(AutomationWatchError):
    """Listing accounts, webhooks, variables or secrets failed."""


class DeliveryError(AutomationWatchError):
    """Sending a mail or starting the mail job failed."""
