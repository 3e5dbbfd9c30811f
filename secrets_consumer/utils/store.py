"""Abstract interface for key/value secret stores.

The resolution logic only talks to a StoreReader, so a Vault client,
a cloud secret manager or an in-memory test double are interchangeable.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from secrets_consumer.utils.exceptions import SecretFormatError

RawDocument = Mapping[str, Any]


class StoreReader(ABC):
    @abstractmethod
    def read(self, path: str) -> RawDocument:
        """Read one document at path.

        Raises:
            SecretNotFound: nothing is stored at path
            StoreTransportError: the store could not be reached or refused access
        """

    @abstractmethod
    def list(self, path: str) -> list[str]:
        """List the child keys at path.

        Subtrees are returned with a trailing "/". A path without children
        yields an empty list.

        Raises:
            StoreTransportError: the store could not be reached or refused access
            AddressingError: the store does not support listing
        """

    @abstractmethod
    def read_versioned(self, path: str, version: str) -> RawDocument:
        """Read a specific version of the document at path.

        Raises:
            SecretNotFound: nothing is stored at path for that version
            StoreTransportError: the store could not be reached or refused access
        """

    def close(self) -> None:  # noqa: B027
        """Release connections held by the reader. Optional."""


def load_json_document(path: str, payload: str | bytes | None) -> RawDocument:
    """Decodes a secret stored as a JSON object."""
    try:
        data = json.loads(payload or "")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SecretFormatError(
            f"bad secret JSON data, can not decode secret JSON data of {path}: {e}"
        ) from e
    if not isinstance(data, dict):
        raise SecretFormatError(f"secret {path} is not a JSON object")
    return data
