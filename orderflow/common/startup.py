"""Startup-time helpers for safe config logging."""

import os
from urllib.parse import urlsplit, urlunsplit

from orderflow.common.logging import logger


SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")


def _strip_credentials(value: str) -> str:
    # DSNs carry credentials in the netloc.
    parts = urlsplit(value)
    if not parts.password:
        return value
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=f"{parts.username}:<redacted>@{host}"))


def _safe_env(name: str) -> str:
    """Return env value with redaction for secret-like names and DSN passwords."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(marker in name for marker in SECRET_MARKERS):
        return "<redacted>"
    return _strip_credentials(value)


def log_startup_config(service_name: str, keys: list[str]) -> dict[str, str]:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    logger.info("startup_config=%s", config)
    return config
