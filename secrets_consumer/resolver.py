import logging
from collections.abc import (
    Iterable,
    Mapping,
)
from typing import Any

from secrets_consumer.utils.exceptions import SecretFieldNotFound
from secrets_consumer.utils.kv_path import (
    PlannedRead,
    plan_reads,
)
from secrets_consumer.utils.secret_address import SecretAddress
from secrets_consumer.utils.store import (
    RawDocument,
    StoreReader,
)

LOG = logging.getLogger(__name__)

NAMES_AS_KEYS_FIELD = "value"

SecretMap = dict[str, Any]


def unwrap_envelope(document: RawDocument) -> SecretMap:
    """Returns the secret fields of a document.

    KV v2 reads wrap the fields in a "data" mapping next to "metadata".
    """
    data = document.get("data")
    if isinstance(data, Mapping):
        return dict(data)
    return dict(document)


def read_document(
    store: StoreReader, path: str, version: str | None = None
) -> SecretMap:
    if version:
        document = store.read_versioned(path, version)
    else:
        document = store.read(path)
    return unwrap_envelope(document)


def _single_value(data: SecretMap, read: PlannedRead) -> Any:
    if NAMES_AS_KEYS_FIELD in data:
        return data[NAMES_AS_KEYS_FIELD]
    if len(data) == 1:
        return next(iter(data.values()))
    raise SecretFieldNotFound(
        f"{read.path} is expected to hold a single '{NAMES_AS_KEYS_FIELD}' "
        f"field to be used with secret names as keys, found: {sorted(data)}"
    )


def retrieve_secret(store: StoreReader, address: SecretAddress) -> SecretMap:
    """Returns a flat mapping of secret names to values for one address.

    For a single secret the (unwrapped) fields of the secret are returned.
    For a directory every listed secret is read: with names-as-keys the
    secret name maps to its single value, otherwise all fields of all
    secrets are merged, later secrets overriding earlier ones.
    """
    plan = plan_reads(store, address)

    if not plan.multi_key:
        read = plan.reads[0]
        LOG.debug(f"getting secret from path: {read.path}")
        return read_document(store, read.path, read.version)

    secrets: SecretMap = {}
    for read in plan.reads:
        LOG.debug(f"getting secret from path: {read.path}")
        data = read_document(store, read.path)
        if address.use_names_as_keys:
            secrets[read.key] = _single_value(data, read)
        else:
            secrets.update(data)
    return secrets


def resolve_secrets(
    store: StoreReader, addresses: Iterable[SecretAddress]
) -> SecretMap:
    """Retrieves and merges the secrets of all addresses in order.

    Later addresses override earlier ones on key collision. Any failure
    aborts the whole resolution.
    """
    secrets: SecretMap = {}
    for address in addresses:
        LOG.info(f"retrieving secrets from path: {address.path}")
        secrets.update(retrieve_secret(store, address))
    return secrets
