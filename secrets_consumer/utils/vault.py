import logging
import time
from collections.abc import Callable
from typing import Any

import hvac
import requests
from google.auth.exceptions import GoogleAuthError
from hvac.exceptions import (
    Forbidden,
    InvalidPath,
    VaultError,
)
from requests.adapters import HTTPAdapter
from sretoolbox.utils import retry

from secrets_consumer.utils import gcp_auth
from secrets_consumer.utils.config import VaultSettings
from secrets_consumer.utils.exceptions import (
    SecretAccessForbidden,
    SecretNotFound,
    SecretsConsumerError,
    SecretVersionNotFound,
    StoreTransportError,
    VaultConnectionError,
)
from secrets_consumer.utils.secret_address import (
    KVVersion,
    SecretAddress,
    SecretConfig,
)
from secrets_consumer.utils.store import (
    RawDocument,
    StoreReader,
)

LOG = logging.getLogger(__name__)


class VaultLoginError(SecretsConsumerError):
    pass


class VaultClient(StoreReader):
    """
    A Vault client for the logical read/list API.
    Paths are passed unchanged, KV v2 data and metadata prefixes are
    expected to be part of the path already.
    """

    def __init__(self, settings: VaultSettings, client: hvac.Client | None = None):
        self.settings = settings
        if client is None:
            session = requests.Session()
            session.mount("https://", HTTPAdapter(pool_maxsize=1))
            client = hvac.Client(
                url=settings.server,
                verify=settings.verify,
                namespace=settings.namespace,
                timeout=settings.timeout,
                session=session,
            )
        self._client = client

        authenticated = False
        for _ in range(0, 3):
            try:
                self._login()
                authenticated = self._client.is_authenticated()
                break
            except requests.exceptions.ConnectionError:
                time.sleep(1)
            except VaultError as e:
                raise VaultConnectionError(settings.server or "vault", e) from e

        if not authenticated:
            raise VaultConnectionError(
                settings.server or "vault", "could not authenticate to Vault"
            )

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self._client.adapter.close()

    def _login(self):
        try:
            self._backend_login()
        except requests.exceptions.ConnectionError:
            raise
        except (
            VaultError,
            requests.exceptions.RequestException,
            GoogleAuthError,
            OSError,
        ) as e:
            raise VaultLoginError(
                f"failed login to Vault using {self.settings.backend} backend: {e}"
            ) from e

    def _backend_login(self):
        match self.settings.backend:
            case "kubernetes":
                self._kubernetes_login()
            case "gcp":
                self._gcp_login()
            case "approle":
                LOG.info("logging into Vault approle backend")
                self._client.auth.approle.login(
                    role_id=self.settings.role_id,
                    secret_id=self.settings.secret_id,
                )
            case "token":
                self._client.token = self.settings.token

    def _kubernetes_login(self):
        LOG.info("getting Kubernetes service account token from file")
        # must read each time to account for sa token refresh
        try:
            with open(self.settings.token_path, encoding="utf-8") as f:
                jwt = f.read()
        except OSError as e:
            raise VaultLoginError(
                f"failed to read service account token file {e}, "
                "use the TOKEN_PATH environment variable for another location"
            ) from e
        LOG.info(
            f"logging into Vault Kubernetes backend using the role {self.settings.role}"
        )
        self._client.auth.kubernetes.login(
            role=self.settings.role,
            jwt=jwt,
            mount_point=self.settings.kube_auth_mount,
        )

    def _gcp_login(self):
        credentials = gcp_auth.load_service_account(self.settings.credentials_path)
        jwt = gcp_auth.generate_signed_jwt(credentials, self.settings.role)
        LOG.info(f"logging into Vault GCP backend using the role {self.settings.role}")
        self._client.auth.gcp.login(
            role=self.settings.role,
            jwt=jwt,
            mount_point=self.settings.gcp_auth_mount,
        )

    @retry(exceptions=requests.exceptions.ConnectionError)
    def _request(self, f: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return f(*args, **kwargs)

    def _call(
        self, f: Callable[..., Any], path: str, *args: Any, **kwargs: Any
    ) -> Any:
        try:
            return self._request(f, *args, **kwargs)
        except Forbidden as e:
            raise SecretAccessForbidden(path) from e
        except (VaultError, requests.exceptions.RequestException) as e:
            raise StoreTransportError(path, e) from e

    def kv_config(self, path: str) -> tuple[str, KVVersion]:
        """Returns the mount path and KV engine version of a secret path."""
        path = path.strip().strip("/")
        try:
            response = self._call(
                self._client.adapter.get, path, f"/v1/sys/internal/ui/mounts/{path}"
            )
        except StoreTransportError as e:
            if isinstance(e.__cause__, InvalidPath):
                return "", KVVersion.V1
            raise
        if not isinstance(response, dict) or not response.get("data"):
            return "", KVVersion.V1
        data = response["data"]
        options = data.get("options") or {}
        kv_version = KVVersion.V2 if options.get("version") == "2" else KVVersion.V1
        return data.get("path") or "", kv_version

    def secret_address(self, config: SecretConfig) -> SecretAddress:
        mount_path, kv_version = self.kv_config(config.path)
        LOG.debug(
            f"path {config.path} is on mount '{mount_path}' (KV v{int(kv_version)})"
        )
        return config.to_address(mount_path, kv_version)

    def read(self, path: str) -> RawDocument:
        LOG.debug(f"getting Vault secrets from path: {path}")
        secret = self._call(self._client.read, path, path)
        if secret is None or secret.get("data") is None:
            raise SecretNotFound(f"Vault secret path not found {path}")
        return secret["data"]

    def read_versioned(self, path: str, version: str) -> RawDocument:
        LOG.debug(f"getting Vault secrets from path: {path} (version {version})")
        try:
            secret = self._call(
                self._client.adapter.get,
                path,
                f"/v1/{path}",
                params={"version": version},
            )
        except StoreTransportError as e:
            if isinstance(e.__cause__, InvalidPath):
                raise SecretVersionNotFound(
                    f"version '{version}' not found for secret with path '{path}'"
                ) from e
            raise
        if not isinstance(secret, dict) or secret.get("data") is None:
            raise SecretVersionNotFound(
                f"version '{version}' not found for secret with path '{path}'"
            )
        return secret["data"]

    def list(self, path: str) -> list[str]:
        """Returns a list of secrets in a given path."""
        response = self._call(self._client.list, path, path)
        if not response:
            # path list can be None if the path does not exist
            return []
        for warning in response.get("warnings") or []:
            LOG.warning(warning)
        return list(response["data"]["keys"] or [])
