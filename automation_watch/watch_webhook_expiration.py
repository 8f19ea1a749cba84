"""Watch-WebhookExpiration runbook.

Walks every webhook of every automation account in the subscription and
starts one Send-GraphMail job per webhook that expires within the
ExpiryThreshold number of days.
"""
import logging
import sys

from azure.mgmt.automation import AutomationClient

from automation_watch import expiry
from automation_watch.errors import AutomationWatchError
from automation_watch.identity import get_credential
from automation_watch.inventory import iter_webhooks
from automation_watch.notifier import dispatch_mail_job, webhook_expiry_notification
from automation_watch.settings import WebhookWatchConfig, default_store


logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(levelname)s - %(message)s')
logging.getLogger("azure").setLevel(logging.WARNING)
logger = logging.getLogger("webhook-watcher")


def run(config, client, now=None):
    """Evaluate every webhook once and dispatch a mail job per breach. Returns the dispatches."""
    stats = {
        "accounts": 0,
        "webhooks": 0,
        "expiring": 0,
    }
    dispatches = []

    for webhook in iter_webhooks(client, config.subscription_id, stats):
        stats["webhooks"] += 1
        evaluation = expiry.evaluate(webhook, config.expiry_threshold, now)

        if not evaluation.breach:
            logger.info(f"Webhook {webhook.name} ({webhook.account_name}) expires in {evaluation.days_left} days")
            continue

        stats["expiring"] += 1
        if evaluation.severity is expiry.Severity.EXPIRED:
            logger.warning(f"Webhook {webhook.name} ({webhook.account_name}) HAS EXPIRED {abs(evaluation.days_left)} days ago")
        else:
            logger.warning(f"Webhook {webhook.name} ({webhook.account_name}) expires in {evaluation.days_left} days")

        notification = webhook_expiry_notification(evaluation, config.to)
        dispatches.append(dispatch_mail_job(client, config.mail_resource_group, config.mail_account_name, notification))

    logger.info("=== Summary ===")
    logger.info(f"Automation accounts scanned: {stats['accounts']}")
    logger.info(f"Webhooks evaluated: {stats['webhooks']}")
    logger.info(f"Expiring webhooks (<= {config.expiry_threshold} days): {stats['expiring']}")
    return dispatches


def main():
    try:
        credential = get_credential()
        config = WebhookWatchConfig.load(default_store(credential))
        client = AutomationClient(credential, config.subscription_id)
        run(config, client)
    except AutomationWatchError as e:
        logger.error(f"Watch-WebhookExpiration failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error in Watch-WebhookExpiration: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
