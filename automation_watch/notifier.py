"""Notification templates and the two ways of getting a mail out.

Direct invocation posts to the Graph ``sendMail`` endpoint and checks the
response. Delegated invocation starts the Send-GraphMail runbook as an
Automation job and returns as soon as the job is accepted; the job's outcome
is never awaited, so delivery is best effort.
"""
import logging
import uuid
from dataclasses import dataclass

import requests
from azure.core.exceptions import HttpResponseError

from automation_watch.errors import DeliveryError
from automation_watch.expiry import Severity


logger = logging.getLogger(__name__)


SEND_MAIL_URL = "https://graph.microsoft.com/v1.0/users/{sender}/sendMail"
MAIL_RUNBOOK_NAME = "Send-GraphMail"
REQUEST_TIMEOUT = 30


@dataclass(frozen=True)
class Notification:
    to: str
    subject: str
    body: str
    content_type: str = "HTML"


@dataclass(frozen=True)
class JobDispatch:
    """A started mail job. Only acceptance is known, never the outcome."""
    job_name: str
    job_id: str
    runbook_name: str


def _format_time(value):
    if value is None:
        return "never"
    return value.strftime("%Y-%m-%d %H:%M UTC")


def webhook_expiry_notification(evaluation, to):
    webhook = evaluation.resource
    days = evaluation.days_left

    if evaluation.severity is Severity.EXPIRED:
        subject = f"Webhook {webhook.name} has expired {abs(days)} days ago"
        headline = f"<b>EXPIRED:</b> webhook <b>{webhook.name}</b> expired {abs(days)} days ago."
    else:
        subject = f"Webhook {webhook.name} is expiring in {days} days"
        headline = f"Webhook <b>{webhook.name}</b> is expiring in <b>{days} days</b>."

    body = (
        f"<p>{headline}</p>"
        "<table>"
        f"<tr><td>Subscription</td><td>{webhook.subscription_id}</td></tr>"
        f"<tr><td>Resource group</td><td>{webhook.resource_group}</td></tr>"
        f"<tr><td>Automation account</td><td>{webhook.account_name}</td></tr>"
        f"<tr><td>Runbook</td><td>{webhook.runbook_name or 'unknown'}</td></tr>"
        f"<tr><td>Expires</td><td>{_format_time(webhook.expires_at)}</td></tr>"
        f"<tr><td>Last used</td><td>{_format_time(webhook.last_used_at)}</td></tr>"
        "</table>"
        "<p>Create a new webhook for the runbook and update its callers before the old one expires.</p>"
    )
    return Notification(to=to, subject=subject, body=body)


def secret_expiry_notification(secret_name, vault_name, days, to):
    subject = f"Secret {secret_name} used for transactional mail is expiring in {days} days"
    body = (
        f"<p>The client secret <b>{secret_name}</b> in Key Vault <b>{vault_name}</b> "
        f"used to send transactional mail expires in <b>{days} days</b>.</p>"
        "<p>Create a new client secret for the mail application and store it in the Key Vault "
        "before the current one expires, or mail delivery will stop.</p>"
    )
    return Notification(to=to, subject=subject, body=body)


def graph_mail_payload(notification):
    return {
        "message": {
            "subject": notification.subject,
            "body": {
                "contentType": notification.content_type,
                "content": notification.body,
            },
            "toRecipients": [
                {"emailAddress": {"address": notification.to}},
            ],
        },
        "saveToSentItems": False,
    }


def send_graph_mail(token, sender, notification):
    """Send one mail through Graph on behalf of the sender mailbox."""
    url = SEND_MAIL_URL.format(sender=sender)
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json"
    }

    try:
        response = requests.post(url, headers=headers, json=graph_mail_payload(notification), timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise DeliveryError(f"Sending mail '{notification.subject}' failed: {e}") from e

    if response.status_code != 202:
        raise DeliveryError(
            f"Sending mail '{notification.subject}' failed: {response.status_code} {response.text}"
        )
    logger.info(f"Mail '{notification.subject}' sent to {notification.to}")


def dispatch_mail_job(client, resource_group, account_name, notification, runbook_name=MAIL_RUNBOOK_NAME):
    """Start the mail runbook with the notification as parameters and return without waiting."""
    job_name = str(uuid.uuid4())
    parameters = {
        "properties": {
            "runbook": {"name": runbook_name},
            "parameters": {
                "To": notification.to,
                "Subject": notification.subject,
                "Content": notification.body,
            },
        }
    }

    try:
        job = client.job.create(
            resource_group_name=resource_group,
            automation_account_name=account_name,
            job_name=job_name,
            parameters=parameters,
        )
    except HttpResponseError as e:
        raise DeliveryError(
            f"Starting {runbook_name} in {resource_group}/{account_name} failed: {e.message}"
        ) from e

    logger.info(f"Started {runbook_name} job {job.job_id} for '{notification.subject}'")
    return JobDispatch(job_name=job_name, job_id=job.job_id, runbook_name=runbook_name)
