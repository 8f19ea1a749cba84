"""Azure Automation runbooks that watch expiring webhooks and secrets and send mail."""

__version__ = "1.0.0"
