"""Send-GraphMail runbook.

Sends one transactional mail through Microsoft Graph using a client secret
kept in Key Vault. When that client secret is close to expiry a second mail
warns the configured address; the two sends never depend on each other.
"""
import argparse
import logging
import sys

from automation_watch import expiry
from automation_watch.errors import AutomationWatchError
from automation_watch.identity import acquire_mail_token, get_credential
from automation_watch.keyvault import get_secret
from automation_watch.notifier import Notification, secret_expiry_notification, send_graph_mail
from automation_watch.settings import MailSenderConfig, default_store


logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(levelname)s - %(message)s')
logging.getLogger("azure").setLevel(logging.WARNING)
logger = logging.getLogger("send-graph-mail")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Send a mail through Microsoft Graph.")
    parser.add_argument("to_arg", nargs="?", metavar="To")
    parser.add_argument("subject_arg", nargs="?", metavar="Subject")
    parser.add_argument("content_arg", nargs="?", metavar="Content")
    parser.add_argument("--to", "--To", dest="to")
    parser.add_argument("--subject", "--Subject", dest="subject")
    parser.add_argument("--content", "--Content", dest="content")
    args = parser.parse_args(argv)

    to = args.to or args.to_arg
    if not to:
        parser.error("the To parameter is required")
    subject = args.subject if args.subject is not None else (args.subject_arg or "")
    content = args.content if args.content is not None else (args.content_arg or "")
    return to, subject, content


def secret_warning(config, secret, now=None):
    """Build the expiry warning for the mail secret, or None when it is not due."""
    if secret.expires_at is None:
        return None

    days = expiry.days_left(secret.expires_at, now)
    logger.info(f"Secret {secret.name} expires in {days} days")
    if not expiry.is_breach(days, expiry.SECRET_EXPIRY_THRESHOLD_DAYS):
        return None
    return secret_expiry_notification(secret.name, config.key_vault_name, days, config.expiration_warning_address)


def run(config, to, subject, content, credential, now=None):
    """Send the requested mail plus the secret warning if due. Returns the sent notifications."""
    secret = get_secret(credential, config.key_vault_name, config.secret_name)
    token = acquire_mail_token(config.tenant_id, config.app_id, secret.value)

    warning = secret_warning(config, secret, now)

    sent = []
    primary = Notification(to=to, subject=subject, body=content)
    send_graph_mail(token, config.sender, primary)
    sent.append(primary)

    if warning is not None:
        logger.warning(f"Secret {secret.name} is close to expiry, warning {warning.to}")
        send_graph_mail(token, config.sender, warning)
        sent.append(warning)
    return sent


def main(argv=None):
    to, subject, content = parse_args(argv)
    try:
        credential = get_credential()
        config = MailSenderConfig.load(default_store(credential))
        sent = run(config, to, subject, content, credential)
        logger.info(f"Sent {len(sent)} mail(s)")
    except AutomationWatchError as e:
        logger.error(f"Send-GraphMail failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error in Send-GraphMail: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
