"""
Slow-statement threshold resolution.
"""

from __future__ import annotations

import os

from ..errors import ConfigurationError

SLOW_QUERY_ENV_VAR = "CADENCEORM_SLOW_QUERY_MS"


def resolve_slow_query_ms(default: int = 100, override: int | None = None) -> int:
    """
    Pick the slow-statement threshold: explicit override, then the
    ``CADENCEORM_SLOW_QUERY_MS`` environment variable, then ``default``.
    """

    if override is not None:
        if override < 0:
            raise ConfigurationError("slow_query_ms must be zero or positive.")
        return override
    raw = os.getenv(SLOW_QUERY_ENV_VAR)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid integer value for '{SLOW_QUERY_ENV_VAR}': {raw!r}"
        ) from exc
    if value < 0:
        raise ConfigurationError(f"{SLOW_QUERY_ENV_VAR} must be zero or positive.")
    return value
