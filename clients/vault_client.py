"""
Database credentials from HashiCorp Vault.

The service reads exactly one secret: the PostgreSQL URL kept in the KV v2
engine at estate/database, field "url". It is fetched over an AppRole login
the first time it is needed and then held for the life of the process.
Only consulted when DATABASE_URL is not set.
"""

import logging
import os
from functools import lru_cache

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized, VaultError

logger = logging.getLogger(__name__)

DATABASE_SECRET_PATH = "estate/database"
DATABASE_URL_FIELD = "url"


def _approle_login() -> hvac.Client:
    """Authenticated client from VAULT_ADDR, VAULT_ROLE_ID and VAULT_SECRET_ID."""
    vault_addr = os.getenv("VAULT_ADDR")
    role_id = os.getenv("VAULT_ROLE_ID")
    secret_id = os.getenv("VAULT_SECRET_ID")
    if not vault_addr:
        raise ValueError("VAULT_ADDR is required when DATABASE_URL is not set")
    if not role_id or not secret_id:
        raise ValueError("VAULT_ROLE_ID and VAULT_SECRET_ID are required for the AppRole login")

    client = hvac.Client(url=vault_addr, namespace=os.getenv("VAULT_NAMESPACE") or None)
    try:
        # use_token (the default) puts the issued token on the client
        client.auth.approle.login(role_id=role_id, secret_id=secret_id)
    except VaultError as e:
        raise PermissionError(f"Vault AppRole authentication failed: {e}") from e

    if not client.is_authenticated():
        raise PermissionError("Vault AppRole authentication failed")
    return client


@lru_cache(maxsize=1)
def get_database_url() -> str:
    """
    PostgreSQL connection URL from Vault.

    Raises:
        ValueError: Vault address or AppRole credentials missing
        PermissionError: Login rejected, or the secret is absent or denied
        KeyError: The secret has no "url" field
    """
    client = _approle_login()
    try:
        response = client.secrets.kv.v2.read_secret_version(
            path=DATABASE_SECRET_PATH, raise_on_deleted_version=True
        )
    except InvalidPath:
        raise PermissionError(f"No secret at '{DATABASE_SECRET_PATH}' in Vault") from None
    except (Unauthorized, Forbidden) as e:
        raise PermissionError(f"Access denied to '{DATABASE_SECRET_PATH}': {e}") from e

    secret = response["data"]["data"]
    if DATABASE_URL_FIELD not in secret:
        raise KeyError(f"'{DATABASE_SECRET_PATH}' has no '{DATABASE_URL_FIELD}' field")

    logger.info("Database URL loaded from Vault (%s)", os.getenv("VAULT_ADDR"))
    return secret[DATABASE_URL_FIELD]
