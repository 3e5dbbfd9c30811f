import time
from collections.abc import (
    Callable,
    Mapping,
)
from typing import Any

import pytest

from secrets_consumer.utils.exceptions import (
    SecretNotFound,
    SecretVersionNotFound,
)
from secrets_consumer.utils.store import (
    RawDocument,
    StoreReader,
)


class InMemoryStore(StoreReader):
    """
    Store double keyed by concrete path.
    "documents" maps a path to its document, "lists" maps a path to the
    keys returned when listing it and "versions" maps (path, version) to a
    document. Every call is recorded in "calls".
    """

    def __init__(
        self,
        documents: Mapping[str, RawDocument] | None = None,
        lists: Mapping[str, list[str]] | None = None,
        versions: Mapping[tuple[str, str], RawDocument] | None = None,
    ):
        self.documents = dict(documents or {})
        self.lists = dict(lists or {})
        self.versions = dict(versions or {})
        self.calls: list[tuple[str, ...]] = []

    def read(self, path: str) -> RawDocument:
        self.calls.append(("read", path))
        try:
            return self.documents[path]
        except KeyError:
            raise SecretNotFound(path) from None

    def list(self, path: str) -> list[str]:
        self.calls.append(("list", path))
        return list(self.lists.get(path, []))

    def read_versioned(self, path: str, version: str) -> RawDocument:
        self.calls.append(("read_versioned", path, version))
        try:
            return self.versions[(path, version)]
        except KeyError:
            raise SecretVersionNotFound(f"{path}@{version}") from None


@pytest.fixture
def patch_sleep(mocker):
    yield mocker.patch.object(time, "sleep")


@pytest.fixture
def store_builder() -> Callable[..., InMemoryStore]:
    def builder(**data: Any) -> InMemoryStore:
        return InMemoryStore(**data)

    return builder
