"""
HashiCorp Vault access for pipeline secrets.

AppRole login from VAULT_ADDR / VAULT_ROLE_ID / VAULT_SECRET_ID (and an
optional VAULT_NAMESPACE). Secrets live in KV v2 under the 'foodtruck/'
prefix; callers name the path below it. Each secret is read once per
process and cached.

Missing configuration or denied access is fatal: the pipeline cannot talk
to the database or its providers without these secrets.
"""

import logging
import os
from typing import Dict

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "foodtruck"

_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, Dict[str, str]] = {}


class VaultError(Exception):
    """Vault operation failed. Fatal - the pipeline cannot run without secrets."""


def _required_env(*names: str) -> list[str]:
    missing = [name for name in names if not os.getenv(name)]
    if missing:
        raise ValueError(f"{' and '.join(missing)} environment variable(s) required")
    return [os.environ[name] for name in names]


class VaultClient:
    """Authenticated hvac client scoped to the pipeline's secret prefix."""

    def __init__(self, vault_addr: str | None = None, vault_namespace: str | None = None):
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        role_id, secret_id = _required_env("VAULT_ROLE_ID", "VAULT_SECRET_ID")

        namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        if namespace:
            self.client = hvac.Client(url=self.vault_addr, namespace=namespace)
        else:
            self.client = hvac.Client(url=self.vault_addr)

        self._login(role_id, secret_id)
        logger.info(f"Vault client ready: {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}") from e

        self.client.token = response["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        All fields of the KV v2 secret at foodtruck/<path>.

        Raises:
            PermissionError: Path missing or access denied
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}") from e

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        One field of the secret at foodtruck/<path>.

        Raises:
            PermissionError: Path missing or access denied
            KeyError: Field not present in the secret
        """
        data = self.read_secret(path)
        if field not in data:
            raise KeyError(
                f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(data)}"
            )
        return data[field]


def _ensure_vault_client() -> VaultClient:
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


def _get_fields(path: str, fields: list[str]) -> Dict[str, str]:
    """Selected fields of one secret, read through the process cache."""
    if path not in _secret_cache:
        _secret_cache[path] = _ensure_vault_client().read_secret(path)

    data = _secret_cache[path]
    missing = [field for field in fields if field not in data]
    if missing:
        raise KeyError(f"Secret '{_SECRET_PREFIX}/{path}' is missing: {', '.join(missing)}")

    return {field: data[field] for field in fields}


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _get_fields("database", ["url"])["url"]


def get_invoicing_config() -> Dict[str, str]:
    """Invoicing API credentials: api_key_id, api_key_secret."""
    return _get_fields("invoicing", ["api_key_id", "api_key_secret"])


def get_email_config() -> Dict[str, str]:
    """Email delivery API credentials: api_key."""
    return _get_fields("email", ["api_key"])
