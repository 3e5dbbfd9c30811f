import json

import pytest

from secrets_consumer.utils.exceptions import AddressingError
from secrets_consumer.utils.secret_address import (
    KVVersion,
    SecretAddress,
    SecretConfig,
    parse_secret_config,
)


@pytest.mark.parametrize(
    "address, multi_key",
    [
        (SecretAddress(path="a/b"), False),
        (SecretAddress(path="a/b/"), True),
        (SecretAddress(path="a/b*"), True),
        (SecretAddress(path="a/b", use_names_as_keys=True), True),
    ],
)
def test_is_multi_key(address: SecretAddress, multi_key: bool) -> None:
    assert address.is_multi_key == multi_key


def test_parse_secret_config() -> None:
    config = parse_secret_config(
        '{"path": "/a/b/", "version": 3, "use-secret-names-as-keys": "true"}'
    )
    assert config == SecretConfig(path="/a/b/", version="3", use_names_as_keys=True)


def test_parse_secret_config_defaults() -> None:
    config = parse_secret_config(
        '{"path": "a", "version": "", "use-secret-names-as-keys": ""}'
    )
    assert config.version is None
    assert config.use_names_as_keys is False


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '["a"]',
        '{"version": "1"}',
        '{"path": "a", "use-secret-names-as-keys": "maybe"}',
    ],
)
def test_parse_secret_config_invalid(raw: str) -> None:
    with pytest.raises(AddressingError):
        parse_secret_config(raw)


def test_to_address() -> None:
    config = SecretConfig(path="kv/app", version="2")
    address = config.to_address("kv/", KVVersion.V2)
    assert address == SecretAddress(
        path="kv/app", kv_version=KVVersion.V2, mount_path="kv/", version="2"
    )


def test_parse_secret_config_keeps_cause() -> None:
    with pytest.raises(AddressingError) as e:
        parse_secret_config("not json")
    assert isinstance(e.value.__cause__, json.JSONDecodeError)
