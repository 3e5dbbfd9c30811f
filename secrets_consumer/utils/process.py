import logging
import os
import shutil
from collections.abc import (
    Iterable,
    Sequence,
)
from typing import NoReturn

from secrets_consumer.injector import environ_mapping

LOG = logging.getLogger(__name__)


class CommandError(Exception):
    pass


class CommandNotFound(CommandError):
    pass


class CommandExecError(CommandError):
    pass


def find_binary(command: str) -> str:
    # a command containing a slash is used as is, like execvp does
    if "/" in command:
        if os.path.isfile(command) and os.access(command, os.X_OK):
            return command
        raise CommandNotFound(f"binary not found {command}")
    binary = shutil.which(command)
    if not binary:
        raise CommandNotFound(f"binary not found {command}")
    return binary


def exec_command(args: Sequence[str], environ: Iterable[str]) -> NoReturn:
    """Replaces the current process with args, running with environ only."""
    if not args:
        raise CommandNotFound(
            "no command is given, secrets-consumer-env can't determine the "
            "entrypoint (command), please specify it explicitly"
        )
    binary = find_binary(args[0])
    LOG.info(f"running command using execve: {' '.join(args)}")
    try:
        os.execve(binary, list(args), environ_mapping(environ))
    except OSError as e:
        raise CommandExecError(f"failed to exec process {binary}: {e}") from e
