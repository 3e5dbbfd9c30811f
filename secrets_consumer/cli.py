import logging
import os
import re
import sys
from collections.abc import Callable
from importlib.metadata import (
    PackageNotFoundError,
    version as dist_version,
)
from typing import Any

import click
import sentry_sdk
from pydantic import (
    BaseModel,
    ValidationError,
)
from sentry_sdk.integrations.logging import LoggingIntegration

from secrets_consumer.injector import (
    environ_entries,
    inject_environment,
)
from secrets_consumer.resolver import (
    SecretMap,
    read_document,
    resolve_secrets,
)
from secrets_consumer.status import ExitCodes
from secrets_consumer.utils.aws_secrets import (
    AWS_CURRENT,
    AWS_PREVIOUS,
    AWSSecretsManagerReader,
)
from secrets_consumer.utils.config import (
    AWSSettings,
    ConfigNotFound,
    GCPSettings,
    VaultSettings,
    merge_settings,
    read_config,
)
from secrets_consumer.utils.environment import (
    SECRETS_CONSUMER_CONFIG,
    init_env,
)
from secrets_consumer.utils.exceptions import SecretsConsumerError
from secrets_consumer.utils.gcp_secrets import GCPSecretManagerReader
from secrets_consumer.utils.process import (
    CommandError,
    exec_command,
)
from secrets_consumer.utils.secret_address import (
    SecretConfig,
    parse_secret_config,
)
from secrets_consumer.utils.vault import VaultClient

DIST_NAME = "secrets-consumer-env"
# values accepted as true by the Vault CLI
TRUE_VALUES = frozenset(["1", "t", "T", "TRUE", "true", "True"])


def before_breadcrumb(crumb: dict, _: Any) -> dict:
    # https://docs.sentry.io/platforms/python/configuration/filtering/
    if crumb.get("message"):
        crumb["message"] = re.sub(
            r"(token|jwt|secret_id)=\S+", r"\1=***", crumb["message"]
        )
    return crumb


# Enable Sentry
if os.getenv("SENTRY_DSN"):
    match os.environ.get("SENTRY_EVENT_LEVEL", "CRITICAL").upper():
        case "CRITICAL":
            sentry_event_level = logging.CRITICAL
        case "ERROR":
            sentry_event_level = logging.ERROR
        case _:
            raise ValueError(
                "Invalid value for SENTRY_EVENT_LEVEL. Must be CRITICAL or ERROR."
            )

    sentry_sdk.init(
        os.environ["SENTRY_DSN"],
        before_breadcrumb=before_breadcrumb,
        integrations=[
            LoggingIntegration(event_level=sentry_event_level),
        ],
    )


def env(name: str) -> Callable[[], str | None]:
    return lambda: os.environ.get(name) or None


def env_flag(name: str) -> Callable[[], bool]:
    return lambda: os.environ.get(name, "") in TRUE_VALUES


def config_file(function: Callable) -> Callable:
    help_msg = "Path to configuration file in toml format."
    function = click.option(
        "--config",
        "configfile",
        default=env(SECRETS_CONSUMER_CONFIG),
        help=help_msg,
    )(function)
    return function


def log_level(function: Callable) -> Callable:
    function = click.option(
        "--log-level",
        help="log-level of the command. Defaults to INFO.",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    )(function)
    return function


def google_application_credentials(function: Callable) -> Callable:
    function = click.option(
        "--google-application-credentials",
        "-a",
        "credentials_path",
        help="The file path to the GCP service account json file with "
        "permission to the secret.",
        default=env("GOOGLE_APPLICATION_CREDENTIALS"),
    )(function)
    return function


def command_args(function: Callable) -> Callable:
    function = click.argument(
        "command",
        nargs=-1,
        type=click.UNPROCESSED,
    )(function)
    return function


def build_settings(
    model: type[BaseModel], ctx: click.Context, section: str, **options: Any
) -> Any:
    settings = merge_settings(ctx.obj["config"], section, **options)
    try:
        return model.model_validate(settings)
    except ValidationError as e:
        raise click.UsageError(f"invalid {section} configuration: {e}") from None


def validate_credentials_file(credentials_path: str | None) -> None:
    if credentials_path and not os.path.isfile(credentials_path):
        raise click.BadParameter(
            "Could not find google-application-credentials service account "
            f"file at: {credentials_path}",
            param_hint="--google-application-credentials",
        )


def validate_command(command: tuple[str, ...]) -> None:
    if not command:
        logging.error(
            "no command is given, secrets-consumer-env can't determine the "
            "entrypoint (command), please specify it explicitly after '--'"
        )
        sys.exit(ExitCodes.ERROR)


def process_secrets(retrieve: Callable[[], SecretMap], command: list[str]) -> None:
    try:
        secrets = retrieve()
        logging.info("processing secrets from secret manager as environment variables")
        environ = inject_environment(secrets, environ_entries(os.environ))
        exec_command(command, environ)
    except (SecretsConsumerError, CommandError) as e:
        logging.error(e)
        sys.exit(ExitCodes.ERROR)


@click.group()
@config_file
@log_level
@click.pass_context
def root(ctx: click.Context, configfile: str | None, log_level: str | None) -> None:
    """Consume secrets from AWS, GCP or Hashicorp Vault.

    Secrets are fetched from the secret manager and added to the environment
    of the given command, which then replaces this process. The secrets never
    touch the disk.

    Use "--" to separate the arguments of the command from the
    secrets-consumer-env arguments.
    """
    ctx.ensure_object(dict)
    init_env(log_level=log_level)
    try:
        ctx.obj["config"] = read_config(configfile)
    except ConfigNotFound as e:
        raise click.BadParameter(str(e), param_hint="--config") from None


@root.command(short_help="Fetch and inject secrets from Vault to a given command.")
@click.option(
    "--backend",
    "-b",
    help="Vault authentication backend.",
    type=click.Choice(["kubernetes", "gcp", "approle", "token"]),
    default=env("VAULT_BACKEND"),
)
@click.option(
    "--vault-addr",
    help="Vault server address.",
    default=env("VAULT_ADDR"),
)
@click.option(
    "--role",
    help="Vault role, required for the kubernetes and gcp backends.",
    default=env("VAULT_ROLE"),
)
@click.option(
    "--token-path",
    help="Kubernetes service account JWT token file path.",
    default=env("TOKEN_PATH"),
)
@click.option(
    "--path",
    help="Vault secrets path, a path ending with a '/' or containing a '*' "
    "gets all secrets below that path.",
    default=env("VAULT_PATH"),
)
@click.option(
    "--version",
    "secret_version",
    help="Secret version if using a KV v2 engine (default: latest).",
    default=env("SECRET_VERSION"),
)
@click.option(
    "--names-as-keys",
    help="Use secret names as keys.",
    is_flag=True,
    envvar="NAMES_AS_KEYS",
)
@click.option(
    "--secret-config",
    help='Secret in JSON like: \'{"path": "/some/secret/path", "version": "3", '
    '"use-secret-names-as-keys": true}\'. Can be specified multiple times.',
    multiple=True,
)
@click.option(
    "--project-id",
    help="GCP project ID for the gcp backend login.",
    default=env("PROJECT_ID"),
)
@google_application_credentials
@command_args
@click.pass_context
def vault(
    ctx: click.Context,
    backend: str | None,
    vault_addr: str | None,
    role: str | None,
    token_path: str | None,
    path: str | None,
    secret_version: str | None,
    names_as_keys: bool,
    secret_config: tuple[str, ...],
    project_id: str | None,
    credentials_path: str | None,
    command: tuple[str, ...],
) -> None:
    """Fetch and inject secrets from Vault to a given command.

    KV v1 and KV v2 engines are supported, the secret path is adjusted to
    the engine version of its mount.

    Without explicit references all secrets are exported with upper-cased
    names. Use NAME=secret:<key> (or vault:<key>) in the environment to
    export only selected secrets.
    """
    settings = build_settings(
        VaultSettings,
        ctx,
        "vault",
        server=vault_addr,
        backend=backend,
        role=role,
        token_path=token_path,
        role_id=os.environ.get("VAULT_ROLE_ID"),
        secret_id=os.environ.get("VAULT_SECRET_ID"),
        token=os.environ.get("VAULT_TOKEN"),
        namespace=os.environ.get("VAULT_NAMESPACE"),
        ca_cert=os.environ.get("VAULT_CACERT"),
        skip_verify=env_flag("VAULT_SKIP_VERIFY")() or None,
        timeout=os.environ.get("VAULT_CLIENT_TIMEOUT"),
        project_id=project_id,
        credentials_path=credentials_path,
    )

    if settings.backend in ("kubernetes", "gcp") and not settings.role:
        raise click.UsageError(
            "Vault role is missing, pass it via --role flag or use VAULT_ROLE "
            "environment variable"
        )
    if settings.backend == "gcp":
        if not settings.credentials_path:
            raise click.UsageError(
                "Google Application Credentials Service Account JSON file "
                "location is missing, pass it via --google-application-credentials "
                "flag or set GOOGLE_APPLICATION_CREDENTIALS environment variable"
            )
        validate_credentials_file(settings.credentials_path)
    if settings.backend == "approle" and not (settings.role_id and settings.secret_id):
        raise click.UsageError(
            "approle backend requires VAULT_ROLE_ID and VAULT_SECRET_ID "
            "environment variables"
        )
    if settings.backend == "token" and not settings.token:
        raise click.UsageError(
            "token backend requires the VAULT_TOKEN environment variable"
        )

    try:
        configs = [parse_secret_config(s) for s in secret_config]
    except SecretsConsumerError as e:
        raise click.BadParameter(str(e), param_hint="--secret-config") from None
    vault_config = ctx.obj["config"].get("vault") or {}
    path = path or vault_config.get("path")
    if path:
        configs.append(
            SecretConfig(
                path=path,
                version=secret_version or vault_config.get("version"),
                use_names_as_keys=names_as_keys
                or vault_config.get("names_as_keys", False),
            )
        )
    if not configs:
        raise click.UsageError(
            "Vault secret path is missing, pass it via --path flag, or set "
            "VAULT_PATH environment variable, you can also use --secret-config flag"
        )
    validate_command(command)

    def retrieve() -> SecretMap:
        with VaultClient(settings) as client:
            addresses = [client.secret_address(c) for c in configs]
            return resolve_secrets(client, addresses)

    process_secrets(retrieve, list(command))


@root.command(short_help="Secrets consumer for AWS Secrets Manager.")
@click.option(
    "--region",
    help="AWS region of the Secrets Manager (default: us-east-1).",
    default=env("REGION"),
)
@click.option(
    "--role-arn",
    help="AWS role ARN with access to the secret, this requires also "
    "permissions on the KMS key for that role.",
    default=env("ROLE_ARN"),
)
@click.option(
    "--secret-name",
    help="AWS secret name.",
    default=env("SECRET_NAME"),
)
@click.option(
    "--previous-version",
    help="Get the previous version of a rotated secret (default: current).",
    is_flag=True,
    envvar="PREVIOUS_VERSION",
)
@command_args
@click.pass_context
def aws(
    ctx: click.Context,
    region: str | None,
    role_arn: str | None,
    secret_name: str | None,
    previous_version: bool,
    command: tuple[str, ...],
) -> None:
    """AWS Secrets Manager holds secrets in JSON format.

    The only versions known to AWS Secrets Manager are the current and the
    previous one, use --previous-version (or PREVIOUS_VERSION) to fetch the
    previous version of a secret rotated by a lambda function.
    """
    settings = build_settings(
        AWSSettings,
        ctx,
        "aws",
        region=region,
        role_arn=role_arn,
        secret_name=secret_name,
        previous_version=previous_version or None,
    )
    validate_command(command)

    def retrieve() -> SecretMap:
        logging.info("using AWS Secrets Manager")
        stage = AWS_PREVIOUS if settings.previous_version else AWS_CURRENT
        with AWSSecretsManagerReader(settings) as reader:
            return read_document(reader, settings.secret_name, stage)

    process_secrets(retrieve, list(command))


@root.command(short_help="Secrets consumer for GCP Secret Manager.")
@click.option(
    "--project-id",
    help="GCP project ID of the Secret Manager.",
    default=env("PROJECT_ID"),
)
@click.option(
    "--secret-name",
    help="GCP secret name.",
    default=env("SECRET_NAME"),
)
@click.option(
    "--secret-version",
    help="GCP secret version (default: latest).",
    default=env("SECRET_VERSION"),
)
@google_application_credentials
@command_args
@click.pass_context
def gcp(
    ctx: click.Context,
    project_id: str | None,
    secret_name: str | None,
    secret_version: str | None,
    credentials_path: str | None,
    command: tuple[str, ...],
) -> None:
    """GCP Secret Manager secrets must be stored in JSON format.

    Authentication uses the given service account file or the application
    default credentials. The account needs the
    roles/secretmanager.secretAccessor role on the secret.
    """
    settings = build_settings(
        GCPSettings,
        ctx,
        "gcp",
        project_id=project_id,
        secret_name=secret_name,
        secret_version=secret_version,
        credentials_path=credentials_path,
    )
    validate_credentials_file(settings.credentials_path)
    validate_command(command)

    def retrieve() -> SecretMap:
        logging.info("using GCP Secret Manager")
        with GCPSecretManagerReader(settings) as reader:
            return read_document(reader, settings.secret_name, settings.secret_version)

    process_secrets(retrieve, list(command))


@root.command(short_help="Print the version.")
def version() -> None:
    try:
        click.echo(f"{DIST_NAME} {dist_version(DIST_NAME)}")
    except PackageNotFoundError:
        click.echo(f"{DIST_NAME} unknown")
