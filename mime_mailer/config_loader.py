# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Load SMTP sender settings from an INI file with environment fallbacks.

Environment variables (all prefixed with MIME_MAILER_):
  MIME_MAILER_CONFIG - Path to the INI file (default: mime-mailer.ini)
  MIME_MAILER_LOG_LEVEL - Logging level (default: INFO)
  MIME_MAILER_SMTP_HOST - SMTP server host (default: localhost)
  MIME_MAILER_SMTP_PORT - SMTP server port (default: 25)
  MIME_MAILER_SMTP_USER - SMTP username
  MIME_MAILER_SMTP_PASSWORD - SMTP password
  MIME_MAILER_TLS_MODE - opportunistic, required or implicit (default: opportunistic)
  MIME_MAILER_SMTP_TIMEOUT - Per-command timeout in seconds (default: 60)

Config file keys, all in the [smtp] section:
  host, port, user, password, tls_mode, timeout

Values from the INI file win over the environment.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError
from .logger import get_logger
from .models import Credentials
from .smtp_session import DEFAULT_PORT, DEFAULT_TIMEOUT, TLSMode, TLSPolicy

logger = get_logger(__name__)

ENV_PREFIX = "MIME_MAILER_"
DEFAULT_CONFIG_PATH = "mime-mailer.ini"
SECTION = "smtp"


@dataclass(frozen=True)
class SenderSettings:
    host: str = "localhost"
    port: int = DEFAULT_PORT
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    tls_mode: TLSMode = TLSMode.OPPORTUNISTIC
    timeout: float = DEFAULT_TIMEOUT

    def credentials(self) -> Optional[Credentials]:
        if not self.user:
            return None
        return Credentials(self.user, self.password or "")

    def tls_policy(self) -> TLSPolicy:
        return TLSPolicy(mode=self.tls_mode)


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SenderSettings:
    """Return :class:`SenderSettings` from ``path`` and the environment.

    A missing config file is not an error: the environment and the defaults
    are used instead.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_PATH))
    parser = configparser.ConfigParser()
    if config_path.exists():
        parser.read(config_path)
        logger.debug("Loaded settings from %s", config_path)
    elif path:
        raise ConfigurationError(f"Config file not found: {config_path}")

    def get(option: str, env_name: str) -> Optional[str]:
        if parser.has_option(SECTION, option):
            return parser.get(SECTION, option)
        return env.get(f"{ENV_PREFIX}{env_name}")

    host = get("host", "SMTP_HOST") or "localhost"
    port = _parse_number(get("port", "SMTP_PORT"), int, DEFAULT_PORT, "port")
    timeout = _parse_number(get("timeout", "SMTP_TIMEOUT"), float, DEFAULT_TIMEOUT, "timeout")

    raw_mode = (get("tls_mode", "TLS_MODE") or TLSMode.OPPORTUNISTIC.value).strip().lower()
    try:
        tls_mode = TLSMode(raw_mode)
    except ValueError as exc:
        choices = ", ".join(mode.value for mode in TLSMode)
        raise ConfigurationError(f"Invalid tls_mode {raw_mode!r} (expected one of: {choices})") from exc

    return SenderSettings(
        host=host,
        port=port,
        user=get("user", "SMTP_USER") or None,
        password=get("password", "SMTP_PASSWORD"),
        tls_mode=tls_mode,
        timeout=timeout,
    )


def _parse_number(value: Optional[str], kind, default, option: str):
    if value is None or not value.strip():
        return default
    try:
        number = kind(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {option} value: {value!r}") from exc
    if number <= 0:
        raise ConfigurationError(f"Invalid {option} value: {value!r}")
    return number
