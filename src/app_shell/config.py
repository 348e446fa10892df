import logging
import os
from pathlib import Path

from src.rules.models import Rules

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Operational requirements not met at startup."""


def _check_data_dir(data_dir: Path) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    if not os.access(data_dir, os.W_OK):
        raise ConfigurationError(f"Data directory is not writable: {data_dir}")


def validate_ops_rules(
    rules: Rules,
    data_dir: Path,
    environment: str = "development",
    cron_secret: str | None = None,
) -> None:
    """
    Check the host before the scheduler starts serving.

    The data directory holds the SQLite database, so it is created when
    missing. A missing cron secret is not fatal: the trigger endpoints
    simply refuse every call until one is configured.
    """
    ops = rules.ops

    if ops.data_dir_required:
        _check_data_dir(data_dir)

    missing = [name for name in ops.required_env if not os.environ.get(name)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    if not cron_secret:
        logger.warning(
            "CRON_SECRET is not set; /api/cron triggers will reject all calls (env=%s)",
            environment,
        )

    logger.info("Configuration validated (env=%s, data_dir=%s)", environment, data_dir)
