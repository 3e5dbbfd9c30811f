import json
import logging
from collections.abc import (
    Iterable,
    Mapping,
)
from dataclasses import dataclass
from typing import Any

from secrets_consumer.utils.exceptions import ReferenceResolutionError

LOG = logging.getLogger(__name__)

REFERENCE_PREFIXES = ("vault:", "secret:")
ESCAPE_PREFIX = ">>"

# Vault client configuration, never handed over to the child process
SANITIZED_ENV_VARS = frozenset([
    "VAULT_TOKEN",
    "VAULT_ADDR",
    "VAULT_CACERT",
    "VAULT_CAPATH",
    "VAULT_CLIENT_CERT",
    "VAULT_CLIENT_KEY",
    "VAULT_CLIENT_TIMEOUT",
    "VAULT_CLUSTER_ADDR",
    "VAULT_MAX_RETRIES",
    "VAULT_REDIRECT_ADDR",
    "VAULT_SKIP_VERIFY",
    "VAULT_TLS_SERVER_NAME",
    "VAULT_CLI_NO_COLOR",
    "VAULT_RATE_LIMIT",
    "VAULT_NAMESPACE",
    "VAULT_MFA",
    "VAULT_ROLE",
    "VAULT_PATH",
    "VAULT_ROLE_ID",
    "VAULT_SECRET_ID",
])


@dataclass(frozen=True)
class EnvironmentEntry:
    name: str
    value: str
    reference: str | None = None

    @classmethod
    def parse(cls, entry: str) -> "EnvironmentEntry":
        name, _, value = entry.partition("=")
        unescaped = value.removeprefix(ESCAPE_PREFIX)
        if unescaped != value and unescaped.startswith(REFERENCE_PREFIXES):
            return cls(name=name, value=unescaped)
        for prefix in REFERENCE_PREFIXES:
            if value.startswith(prefix):
                return cls(name=name, value=value, reference=value[len(prefix) :])
        return cls(name=name, value=value)


def render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (Mapping, list)):
        return json.dumps(value)
    return str(value)


class SanitizedEnviron(list):
    """name=value entries for a child process, without Vault variables."""

    def append_var(self, name: str, value: Any) -> None:
        if name in SANITIZED_ENV_VARS:
            return
        self.append(f"{name}={render_value(value)}")


def inject_environment(
    secrets: Mapping[str, Any], environ: Iterable[str]
) -> SanitizedEnviron:
    """Builds the environment of the child process.

    Values of the form secret:<key> or vault:<key> are replaced with the
    secret of that key. When no such reference exists, every secret is
    added with its name upper-cased instead. Prefixing a reference with
    ">>" passes it on literally.
    """
    entries = [EnvironmentEntry.parse(e) for e in environ]
    references = [e for e in entries if e.reference is not None]

    resolved = []
    for entry in references:
        if entry.reference not in secrets:
            raise ReferenceResolutionError(entry.reference)
        LOG.info(f"explicit key: {entry.name} will be added to the environment")
        resolved.append((entry.name, secrets[entry.reference]))

    sanitized = SanitizedEnviron()
    for entry in entries:
        if entry.reference is None:
            sanitized.append_var(entry.name, entry.value)
    for name, value in resolved:
        sanitized.append_var(name, value)

    if not references:
        LOG.info("no explicit keys found, adding all secrets to the environment")
        for name, value in secrets.items():
            sanitized.append_var(name.upper(), value)

    return sanitized


def environ_entries(environ: Mapping[str, str]) -> list[str]:
    return [f"{name}={value}" for name, value in environ.items()]


def environ_mapping(entries: Iterable[str]) -> dict[str, str]:
    env = {}
    for entry in entries:
        name, _, value = entry.partition("=")
        env[name] = value
    return env
