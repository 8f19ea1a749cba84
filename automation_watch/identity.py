"""Managed identity login and the client-credentials token used for Graph mail."""
import logging

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from automation_watch.errors import AuthenticationError


logger = logging.getLogger(__name__)


TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
REQUEST_TIMEOUT = 30


def get_credential():
    """Managed identity inside Azure Automation, environment or CLI login elsewhere."""
    return DefaultAzureCredential(
        exclude_environment_credential=False,
        exclude_managed_identity_credential=False,
        exclude_workload_identity_credential=False
    )


def get_bearer_token(credential, scope):
    try:
        return credential.get_token(scope).token
    except ClientAuthenticationError as e:
        raise AuthenticationError(f"Could not get a token for {scope}: {e.message}") from e


def acquire_mail_token(tenant_id, client_id, client_secret):
    """Exchange the stored client secret for a Graph access token."""
    payload = {
        "client_id": client_id,
        "client_secret": client_secret,
        "scope": GRAPH_SCOPE,
        "grant_type": "client_credentials",
    }
    url = TOKEN_URL.format(tenant_id=tenant_id)

    try:
        response = requests.post(url, data=payload, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise AuthenticationError(f"Token request for app {client_id} failed: {e}") from e

    if response.status_code != 200:
        raise AuthenticationError(
            f"Token request for app {client_id} failed: {response.status_code} {response.text}"
        )

    token = response.json().get("access_token")
    if not token:
        raise AuthenticationError(f"Token response for app {client_id} did not contain an access token")

    logger.info(f"Acquired Graph token for app {client_id}")
    return token
