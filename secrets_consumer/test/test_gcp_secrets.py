from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import (
    InternalServerError,
    NotFound,
    PermissionDenied,
)

from secrets_consumer.utils.config import GCPSettings
from secrets_consumer.utils.exceptions import (
    AddressingError,
    SecretAccessForbidden,
    SecretFormatError,
    SecretNotFound,
    StoreTransportError,
)
from secrets_consumer.utils.gcp_secrets import GCPSecretManagerReader


@pytest.fixture
def gcp_client() -> MagicMock:
    client = MagicMock()
    client.access_secret_version.return_value.payload.data = b'{"user": "u"}'
    return client


@pytest.fixture
def reader(gcp_client: MagicMock) -> GCPSecretManagerReader:
    settings = GCPSettings(project_id="my-project", secret_name="app")
    return GCPSecretManagerReader(settings, client=gcp_client)


def test_read_latest(reader: GCPSecretManagerReader, gcp_client: MagicMock) -> None:
    assert reader.read("app") == {"user": "u"}
    gcp_client.access_secret_version.assert_called_once_with(
        request={"name": "projects/my-project/secrets/app/versions/latest"}
    )


def test_read_versioned_full_name(
    reader: GCPSecretManagerReader, gcp_client: MagicMock
) -> None:
    reader.read_versioned("projects/other/secrets/app", "3")
    gcp_client.access_secret_version.assert_called_once_with(
        request={"name": "projects/other/secrets/app/versions/3"}
    )


@pytest.mark.parametrize(
    "error, expected",
    [
        (NotFound("missing"), SecretNotFound),
        (PermissionDenied("denied"), SecretAccessForbidden),
        (InternalServerError("boom"), StoreTransportError),
    ],
)
def test_read_errors(
    reader: GCPSecretManagerReader,
    gcp_client: MagicMock,
    error: Exception,
    expected: type[Exception],
) -> None:
    gcp_client.access_secret_version.side_effect = error
    with pytest.raises(expected):
        reader.read("app")


def test_read_not_json(reader: GCPSecretManagerReader, gcp_client: MagicMock) -> None:
    gcp_client.access_secret_version.return_value.payload.data = b"plain"
    with pytest.raises(SecretFormatError):
        reader.read("app")


def test_list_is_not_supported(reader: GCPSecretManagerReader) -> None:
    with pytest.raises(AddressingError):
        reader.list("app")


def test_read_not_found_keeps_cause(
    reader: GCPSecretManagerReader, gcp_client: MagicMock
) -> None:
    error = NotFound("missing")
    gcp_client.access_secret_version.side_effect = error
    with pytest.raises(SecretNotFound) as e:
        reader.read("app")
    assert e.value.__cause__ is error
