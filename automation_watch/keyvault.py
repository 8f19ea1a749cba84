"""Reads the mail client secret and its expiry from Key Vault."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import requests

from automation_watch.errors import InventoryError
from automation_watch.identity import get_bearer_token


logger = logging.getLogger(__name__)


VAULT_SCOPE = "https://vault.azure.net/.default"
SECRET_URL = "https://{vault_name}.vault.azure.net/secrets/{secret_name}?api-version=7.4"
REQUEST_TIMEOUT = 30


@dataclass(frozen=True)
class StoredSecret:
    name: str
    value: str = field(repr=False)
    expires_at: Optional[datetime] = None


def get_secret(credential, vault_name, secret_name):
    """Fetch the current version of a secret, including its expiration attribute."""
    token = get_bearer_token(credential, VAULT_SCOPE)
    url = SECRET_URL.format(vault_name=vault_name, secret_name=secret_name)
    headers = {"Authorization": f"Bearer {token}"}

    try:
        response = requests.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise InventoryError(f"Reading secret {secret_name} from {vault_name} failed: {e}") from e

    if response.status_code != 200:
        raise InventoryError(
            f"Reading secret {secret_name} from {vault_name} failed: {response.status_code} {response.text}"
        )

    data = response.json()
    value = data.get("value")
    if not value:
        raise InventoryError(f"Secret {secret_name} in {vault_name} has no value")

    exp = data.get("attributes", {}).get("exp")
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None

    if expires_at is None:
        logger.warning(f"Secret {secret_name} in {vault_name} has no expiration date")
    else:
        logger.info(f"Secret {secret_name} in {vault_name} expires on {expires_at.strftime('%Y-%m-%d')}")
    return StoredSecret(name=secret_name, value=value, expires_at=expires_at)
