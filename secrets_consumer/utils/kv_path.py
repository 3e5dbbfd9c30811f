import logging
import posixpath
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from secrets_consumer.utils.exceptions import (
    AddressingError,
    SecretNotFound,
)
from secrets_consumer.utils.secret_address import (
    KVVersion,
    SecretAddress,
)
from secrets_consumer.utils.store import StoreReader

LOG = logging.getLogger(__name__)

KV2_DATA_PREFIX = "data"
KV2_METADATA_PREFIX = "metadata"


def sanitize_path(path: str) -> str:
    """Strip surrounding whitespace and one leading and trailing '/'"""
    path = path.strip()
    path = path.removeprefix("/")
    return path.removesuffix("/")


def ensure_trailing_slash(path: str) -> str:
    return path if path.endswith("/") else path + "/"


def add_prefix_to_kv_path(path: str, mount_path: str, api_prefix: str) -> str:
    # secret/foo with mount secret/ -> secret/data/foo
    mount = mount_path.rstrip("/")
    if path in (mount, mount + "/"):
        return posixpath.join(mount, api_prefix)
    rest = path.removeprefix(mount + "/") if mount else path
    return posixpath.normpath(posixpath.join(mount, api_prefix, rest.lstrip("/")))


def concrete_path(address: SecretAddress, path: str, api_prefix: str) -> str:
    path = sanitize_path(path)
    if address.kv_version == KVVersion.V2:
        return add_prefix_to_kv_path(path, address.mount_path, api_prefix)
    return path


class WildcardMatch(Enum):
    PREFIX = "prefix"
    SUFFIX = "suffix"
    SUBSTRING = "substring"


@dataclass(frozen=True)
class WildcardPattern:
    segment: str
    match: WildcardMatch
    needle: str

    @classmethod
    def compile(cls, segment: str) -> "WildcardPattern":
        leading = segment.startswith("*")
        trailing = segment.endswith("*")
        needle = segment.strip("*")
        if "*" in needle or not (leading or trailing):
            raise AddressingError(
                f"unsupported wildcard '{segment}', use db*, *db or *db*"
            )
        if leading and trailing:
            match = WildcardMatch.SUBSTRING
        elif trailing:
            match = WildcardMatch.PREFIX
        else:
            match = WildcardMatch.SUFFIX
        return cls(segment=segment, match=match, needle=needle)

    def matches(self, key: str) -> bool:
        match self.match:
            case WildcardMatch.PREFIX:
                return key.startswith(self.needle)
            case WildcardMatch.SUFFIX:
                return key.endswith(self.needle)
            case WildcardMatch.SUBSTRING:
                return self.needle in key

    def filter(self, keys: Iterable[str]) -> list[str]:
        filtered = [k for k in keys if self.matches(k)]
        if not filtered:
            LOG.warning(
                f"keys did not match the path pattern {self.segment}, "
                "check your keys and path"
            )
        else:
            LOG.debug(f"filtered keys: {filtered}")
        return filtered


@dataclass(frozen=True)
class PlannedRead:
    path: str
    key: str | None = None
    version: str | None = None


@dataclass(frozen=True)
class ReadPlan:
    address: SecretAddress
    multi_key: bool
    reads: list[PlannedRead]


def split_wildcard(path: str) -> tuple[str, WildcardPattern]:
    parent, _, segment = path.rpartition("/")
    if "*" in parent:
        raise AddressingError(
            f"wildcards are only supported in the last path segment: {path}"
        )
    parent = parent + "/" if parent else ""
    return parent, WildcardPattern.compile(segment)


def list_keys(store: StoreReader, address: SecretAddress, directory: str) -> list[str]:
    list_path = concrete_path(address, directory, KV2_METADATA_PREFIX)
    LOG.debug(f"listing keys from path: {list_path}")
    keys = store.list(list_path)
    if not keys:
        raise SecretNotFound(
            f"no keys found for list operation at: {list_path}, check the path"
        )
    return keys


def _plan_versioned_read(address: SecretAddress) -> ReadPlan:
    if address.is_wildcard:
        raise AddressingError(
            f"a secret version can not be combined with a wildcard path: "
            f"{address.path}"
        )
    if address.is_multi_key:
        LOG.warning(
            f"secret version {address.version} requested, reading "
            f"{address.path} as a single secret"
        )
    path = concrete_path(address, address.path, KV2_DATA_PREFIX)
    return ReadPlan(
        address=address,
        multi_key=False,
        reads=[PlannedRead(path=path, version=address.version)],
    )


def plan_reads(store: StoreReader, address: SecretAddress) -> ReadPlan:
    """Compute the concrete store paths to read for a secret address.

    Multi-key addresses are expanded by listing the parent directory,
    which is the only store access done here.
    """
    if not address.path.strip():
        raise AddressingError("secret path can not be empty")

    if address.version:
        if address.kv_version == KVVersion.V2:
            return _plan_versioned_read(address)
        LOG.warning(
            f"ignoring secret version {address.version} for {address.path}, "
            "KV v1 secrets are not versioned"
        )

    if not address.is_multi_key:
        path = concrete_path(address, address.path, KV2_DATA_PREFIX)
        return ReadPlan(
            address=address, multi_key=False, reads=[PlannedRead(path=path)]
        )

    directory = address.path
    pattern = None
    if address.is_wildcard:
        directory, pattern = split_wildcard(directory)
    elif address.use_names_as_keys:
        directory = ensure_trailing_slash(directory)

    keys = list_keys(store, address, directory)
    if pattern is not None:
        keys = pattern.filter(keys)

    if address.use_names_as_keys:
        LOG.debug("using secret names as keys")
    else:
        LOG.debug("using secret keys and values")

    reads = []
    for key in keys:
        if key.endswith("/"):
            LOG.warning(f"key {key} is a subtree - ignoring it")
            continue
        path = concrete_path(address, directory + key, KV2_DATA_PREFIX)
        reads.append(PlannedRead(path=path, key=key))
    return ReadPlan(address=address, multi_key=True, reads=reads)
