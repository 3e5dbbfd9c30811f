import json
from enum import IntEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from secrets_consumer.utils.exceptions import AddressingError


class KVVersion(IntEnum):
    V1 = 1
    V2 = 2


class SecretAddress(BaseModel):
    """
    A secret to read from a key/value store.

    A path ending with "/" or containing "*" addresses a directory of
    secrets, so does any path when use_names_as_keys is set.
    mount_path is only relevant for KV v2 mounts, where the data and
    metadata API prefixes are inserted right after it.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    kv_version: KVVersion = KVVersion.V1
    mount_path: str = ""
    version: str | None = None
    use_names_as_keys: bool = False

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.path

    @property
    def is_multi_key(self) -> bool:
        return self.path.endswith("/") or self.is_wildcard or self.use_names_as_keys


class SecretConfig(BaseModel):
    """User supplied secret configuration, before the mount is known.

    Accepts the JSON shape of --secret-config:
    {"path": "a/b/", "version": "3", "use-secret-names-as-keys": "true"}
    """

    model_config = ConfigDict(populate_by_name=True)

    path: str
    version: str | None = None
    use_names_as_keys: bool = Field(False, alias="use-secret-names-as-keys")

    @field_validator("version", mode="before")
    @classmethod
    def version_as_string(cls, v: Any) -> str | None:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("use_names_as_keys", mode="before")
    @classmethod
    def empty_flag_is_false(cls, v: Any) -> Any:
        return False if v in (None, "") else v

    def to_address(self, mount_path: str, kv_version: KVVersion) -> SecretAddress:
        return SecretAddress(
            path=self.path,
            kv_version=kv_version,
            mount_path=mount_path,
            version=self.version,
            use_names_as_keys=self.use_names_as_keys,
        )


def parse_secret_config(raw: str) -> SecretConfig:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise AddressingError(
            f"unable to decode JSON from string {raw} - {e}"
        ) from e
    if not isinstance(data, dict):
        raise AddressingError(f"secret config must be a JSON object: {raw}")
    try:
        return SecretConfig.model_validate(data)
    except ValidationError as e:
        raise AddressingError(f"invalid secret config {raw}: {e}") from e
