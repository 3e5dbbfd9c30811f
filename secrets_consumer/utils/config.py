from collections.abc import Mapping
from typing import (
    Any,
    Literal,
)

import toml
from pydantic import (
    BaseModel,
    ConfigDict,
)

DEFAULT_KUBE_SA_TOKEN_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/token"  # noqa: S105


class ConfigNotFound(Exception):
    pass


class VaultSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    server: str | None = None
    backend: Literal["kubernetes", "gcp", "approle", "token"] = "kubernetes"
    role: str | None = None
    token_path: str = DEFAULT_KUBE_SA_TOKEN_PATH
    kube_auth_mount: str = "kubernetes"
    gcp_auth_mount: str = "gcp"
    role_id: str | None = None
    secret_id: str | None = None
    token: str | None = None
    namespace: str | None = None
    ca_cert: str | None = None
    skip_verify: bool = False
    timeout: int = 30
    project_id: str | None = None
    credentials_path: str | None = None

    @property
    def verify(self) -> bool | str:
        if self.skip_verify:
            return False
        return self.ca_cert or True


class AWSSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    region: str = "us-east-1"
    role_arn: str | None = None
    secret_name: str
    previous_version: bool = False


class GCPSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    secret_name: str
    secret_version: str = "latest"
    credentials_path: str | None = None


def read_config(configfile: str | None) -> dict[str, Any]:
    if not configfile:
        return {}
    try:
        return toml.load(configfile)
    except FileNotFoundError as e:
        raise ConfigNotFound(f"config file {configfile} not found") from e


def merge_settings(
    config: Mapping[str, Any], section: str, **options: Any
) -> dict[str, Any]:
    """Returns the config file section overlaid with the given options.

    Options set to None were not given on the command line or in the
    environment and fall back to the config file, then to model defaults.
    """
    settings = dict(config.get(section) or {})
    settings.update({k: v for k, v in options.items() if v is not None})
    return settings
