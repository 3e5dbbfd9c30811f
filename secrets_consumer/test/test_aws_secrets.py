import json
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from secrets_consumer.resolver import read_document
from secrets_consumer.utils.aws_secrets import (
    AWS_PREVIOUS,
    AWSSecretsManagerReader,
)
from secrets_consumer.utils.config import AWSSettings
from secrets_consumer.utils.exceptions import (
    AddressingError,
    SecretAccessForbidden,
    SecretFormatError,
    SecretNotFound,
    StoreTransportError,
)

SECRET_NAME = "app/credentials"


@pytest.fixture
def aws_env(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")


@pytest.fixture
def secretsmanager(aws_env):
    with mock_aws():
        client = boto3.client("secretsmanager", region_name="us-east-1")
        client.create_secret(
            Name=SECRET_NAME, SecretString=json.dumps({"user": "u", "pass": "old"})
        )
        client.put_secret_value(
            SecretId=SECRET_NAME,
            SecretString=json.dumps({"user": "u", "pass": "new"}),
        )
        yield client


def test_read_current(secretsmanager) -> None:
    with AWSSecretsManagerReader(AWSSettings(secret_name=SECRET_NAME)) as reader:
        assert reader.read(SECRET_NAME) == {"user": "u", "pass": "new"}


def test_read_previous(secretsmanager) -> None:
    with AWSSecretsManagerReader(AWSSettings(secret_name=SECRET_NAME)) as reader:
        assert read_document(reader, SECRET_NAME, AWS_PREVIOUS) == {
            "user": "u",
            "pass": "old",
        }


def test_read_version_id(secretsmanager) -> None:
    version_id = secretsmanager.get_secret_value(SecretId=SECRET_NAME)["VersionId"]
    reader = AWSSecretsManagerReader(AWSSettings(secret_name=SECRET_NAME))
    assert reader.read_versioned(SECRET_NAME, version_id)["pass"] == "new"


def test_read_with_assumed_role(secretsmanager) -> None:
    settings = AWSSettings(
        secret_name=SECRET_NAME,
        role_arn="arn:aws:iam::123456789012:role/secrets-reader",
    )
    with AWSSecretsManagerReader(settings) as reader:
        assert reader.read(SECRET_NAME)["pass"] == "new"


def test_read_not_found(secretsmanager) -> None:
    reader = AWSSecretsManagerReader(AWSSettings(secret_name="missing"))
    with pytest.raises(SecretNotFound):
        reader.read("missing")


def test_read_not_json(secretsmanager) -> None:
    secretsmanager.create_secret(Name="plain", SecretString="not-json")
    reader = AWSSecretsManagerReader(AWSSettings(secret_name="plain"))
    with pytest.raises(SecretFormatError):
        reader.read("plain")


def test_read_json_not_an_object(secretsmanager) -> None:
    secretsmanager.create_secret(Name="list", SecretString="[1, 2]")
    reader = AWSSecretsManagerReader(AWSSettings(secret_name="list"))
    with pytest.raises(SecretFormatError):
        reader.read("list")


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetSecretValue")


def test_read_access_denied() -> None:
    client = MagicMock()
    client.get_secret_value.side_effect = client_error("AccessDeniedException")
    reader = AWSSecretsManagerReader(AWSSettings(secret_name="s"), client=client)
    with pytest.raises(SecretAccessForbidden) as e:
        reader.read("s")
    assert isinstance(e.value.__cause__, ClientError)


def test_read_other_client_error() -> None:
    client = MagicMock()
    client.get_secret_value.side_effect = client_error("ThrottlingException")
    reader = AWSSecretsManagerReader(AWSSettings(secret_name="s"), client=client)
    with pytest.raises(StoreTransportError):
        reader.read("s")


def test_list_is_not_supported() -> None:
    reader = AWSSecretsManagerReader(AWSSettings(secret_name="s"), client=MagicMock())
    with pytest.raises(AddressingError):
        reader.list("s")
