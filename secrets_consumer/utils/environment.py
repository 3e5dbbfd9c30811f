import logging
import os

SECRETS_CONSUMER_CONFIG = "SECRETS_CONSUMER_CONFIG"
SECRETS_CONSUMER_LOG_LEVEL = "SECRETS_CONSUMER_LOG_LEVEL"

LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_FMT = (
    "[%(asctime)s] [%(levelname)s] "
    "[%(filename)s:%(funcName)s:%(lineno)d] - %(message)s"
)


def init_env(log_level: str | None = None) -> None:
    # the level is not exported, the environment is handed to the command
    log_level = log_level or os.environ.get(SECRETS_CONSUMER_LOG_LEVEL, "INFO")

    logging.basicConfig(
        format=LOG_FMT,
        datefmt=LOG_DATEFMT,
        level=getattr(logging, log_level),
    )
