import logging

from google.api_core.exceptions import (
    GoogleAPICallError,
    NotFound,
    PermissionDenied,
)
from google.auth.exceptions import GoogleAuthError
from google.cloud import secretmanager

from secrets_consumer.utils.config import GCPSettings
from secrets_consumer.utils.exceptions import (
    AddressingError,
    SecretAccessForbidden,
    SecretNotFound,
    StoreTransportError,
)
from secrets_consumer.utils.store import (
    RawDocument,
    StoreReader,
    load_json_document,
)

LOG = logging.getLogger(__name__)

LATEST_VERSION = "latest"


def new_secret_manager_client(
    credentials_path: str | None = None,
) -> secretmanager.SecretManagerServiceClient:
    LOG.info("creating new GCP Secret Manager client")
    if credentials_path:
        return secretmanager.SecretManagerServiceClient.from_service_account_file(
            credentials_path
        )
    return secretmanager.SecretManagerServiceClient()


class GCPSecretManagerReader(StoreReader):
    """Reads JSON secrets from GCP Secret Manager.

    Secret names are resolved within the configured project unless a
    full projects/... resource name is given.
    """

    def __init__(
        self,
        settings: GCPSettings,
        client: secretmanager.SecretManagerServiceClient | None = None,
    ):
        self.settings = settings
        if client is None:
            try:
                client = new_secret_manager_client(settings.credentials_path)
            except (GoogleAuthError, OSError) as e:
                raise StoreTransportError("GCP Secret Manager", e) from e
        self._client = client

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def resource_name(self, name: str, version: str) -> str:
        if name.startswith("projects/"):
            return f"{name}/versions/{version}"
        return (
            f"projects/{self.settings.project_id}/secrets/{name}/versions/{version}"
        )

    def read(self, path: str) -> RawDocument:
        return self.read_versioned(path, LATEST_VERSION)

    def read_versioned(self, path: str, version: str) -> RawDocument:
        name = self.resource_name(path, version)
        LOG.info(f"getting secret {name} from GCP Secret Manager")
        try:
            response = self._client.access_secret_version(request={"name": name})
        except NotFound as e:
            raise SecretNotFound(f"secret not found {name}") from e
        except PermissionDenied as e:
            raise SecretAccessForbidden(name) from e
        except GoogleAPICallError as e:
            raise StoreTransportError(name, e) from e
        return load_json_document(name, response.payload.data)

    def list(self, path: str) -> list[str]:
        raise AddressingError("listing secrets is not supported by GCP Secret Manager")
