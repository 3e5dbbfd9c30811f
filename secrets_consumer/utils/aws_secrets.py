import logging
from typing import Any

from boto3 import Session
from botocore.client import BaseClient
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
)

from secrets_consumer.utils.config import AWSSettings
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

AWS_CURRENT = "AWSCURRENT"
AWS_PREVIOUS = "AWSPREVIOUS"
ROLE_SESSION_NAME = "secrets-consumer-env"


def build_session(region: str, role_arn: str | None = None) -> Session:
    LOG.info(f"using region: {region}")
    session = Session(region_name=region)
    if not role_arn:
        return session

    LOG.debug(f"using role arn: {role_arn}")
    credentials = session.client("sts").assume_role(
        RoleArn=role_arn, RoleSessionName=ROLE_SESSION_NAME
    )["Credentials"]
    return Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=region,
    )


class AWSSecretsManagerReader(StoreReader):
    """Reads JSON secrets from AWS Secrets Manager.

    Only AWSCURRENT and AWSPREVIOUS are known as stages, any other
    version is taken as a version id.
    """

    def __init__(self, settings: AWSSettings, client: BaseClient | None = None):
        self.settings = settings
        if client is None:
            try:
                session = build_session(settings.region, settings.role_arn)
                client = session.client("secretsmanager")
            except (BotoCoreError, ClientError) as e:
                target = settings.role_arn or settings.region
                raise StoreTransportError(target, e) from e
        self._client = client

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self._client.close()

    def read(self, path: str) -> RawDocument:
        return self.read_versioned(path, AWS_CURRENT)

    def read_versioned(self, path: str, version: str) -> RawDocument:
        request: dict[str, Any] = {"SecretId": path}
        if version.startswith("AWS"):
            request["VersionStage"] = version
        else:
            request["VersionId"] = version

        LOG.info(f"getting secret {path} ({version}) from AWS Secrets Manager")
        try:
            response = self._client.get_secret_value(**request)
        except ClientError as e:
            match e.response["Error"]["Code"]:
                case "ResourceNotFoundException":
                    raise SecretNotFound(
                        f"secret {path} ({version}) not found"
                    ) from e
                case "AccessDeniedException":
                    raise SecretAccessForbidden(path) from e
                case _:
                    raise StoreTransportError(path, e) from e
        except BotoCoreError as e:
            raise StoreTransportError(path, e) from e

        return load_json_document(path, response.get("SecretString"))

    def list(self, path: str) -> list[str]:
        raise AddressingError(
            "listing secrets is not supported by AWS Secrets Manager"
        )
