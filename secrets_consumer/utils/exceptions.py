from typing import Any


class SecretsConsumerError(Exception):
    pass


class AddressingError(SecretsConsumerError):
    pass


class SecretNotFound(SecretsConsumerError):
    pass


class SecretFieldNotFound(SecretNotFound):
    pass


class SecretVersionNotFound(SecretNotFound):
    pass


class StoreTransportError(SecretsConsumerError):
    def __init__(self, path: str, msg: Any) -> None:
        super().__init__(f"error accessing '{path}': {msg}")
        self.path = path


class SecretAccessForbidden(StoreTransportError):
    def __init__(self, path: str) -> None:
        super().__init__(path, "permission denied")


class VaultConnectionError(StoreTransportError):
    pass


class SecretFormatError(SecretsConsumerError):
    pass


class ReferenceResolutionError(SecretsConsumerError):
    def __init__(self, key: str) -> None:
        super().__init__(f"env var key: {key} not found in secrets keys")
        self.key = key
