"""Database configuration parsing."""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from recordkit.connection import SQLiteConnection, create_connection

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class DatabaseConfig:
    """Connection settings loaded from an ini file or the environment.

    Example recordkit.ini:
        [database]
        url = sqlite:///app.db
        timeout = 10
        log_queries = true
    """

    url: str
    """Database URL understood by ``create_connection``."""

    timeout: float = 5.0
    """Seconds to wait on a locked database."""

    log_queries: bool = False
    """Log every statement at DEBUG level."""

    extra: dict[str, Any] = field(default_factory=dict)
    """Additional configuration options."""

    @classmethod
    def from_ini(cls, path: Path | str, section: str = "database") -> DatabaseConfig:
        """Load configuration from an ini file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the section or ``url`` is missing
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        config = configparser.ConfigParser()
        config.read(path)

        if section not in config:
            raise ValueError(f"No [{section}] section in {path}")

        options = config[section]
        url = options.get("url")
        if not url:
            raise ValueError(f"url is required in [{section}] of {path}")

        known_keys = {"url", "timeout", "log_queries"}
        extra = {k: v for k, v in options.items() if k not in known_keys}

        return cls(
            url=url,
            timeout=options.getfloat("timeout", 5.0),
            log_queries=options.getboolean("log_queries", False),
            extra=extra,
        )

    @classmethod
    def from_env(cls, prefix: str = "RECORDKIT_", environ: Mapping[str, str] | None = None) -> DatabaseConfig:
        """Load configuration from ``{prefix}DATABASE_URL`` and friends.

        Raises:
            ValueError: If ``{prefix}DATABASE_URL`` is not set or the
                timeout is not a number.
        """
        env = os.environ if environ is None else environ

        url = env.get(f"{prefix}DATABASE_URL")
        if not url:
            raise ValueError(f"{prefix}DATABASE_URL is not set")

        timeout = env.get(f"{prefix}DB_TIMEOUT")
        log_queries = env.get(f"{prefix}LOG_QUERIES", "")

        return cls(
            url=url,
            timeout=float(timeout) if timeout else 5.0,
            log_queries=log_queries.strip().lower() in _TRUTHY,
        )

    def connect(self) -> SQLiteConnection:
        return create_connection(self.url, timeout=self.timeout, log_queries=self.log_queries)
