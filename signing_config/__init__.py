"""
signing_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` is the only way to obtain settings at
    runtime.  No other component reads settings files or the
    ``CONTRACT_SIGNING_CONFIG`` variable directly.

Architecture position:
    Configuration.  Sits beside ``signing_kernel`` and below
    ``signing_services`` / ``scripts``.  The kernel MUST NEVER import from
    ``signing_config``; outer layers pass plain values (ttl, ceiling,
    number prefix) into kernel constructors.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``ValueError`` -- a key is unknown or invalid (the message names it).

Audit relevance:
    Every successful call emits a ``SIGNING_CONFIG_TRACE`` log entry with
    the source path and checksum, tying runtime behavior (token lifetime,
    attempt ceiling) to an exact settings document.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from signing_config.loader import load_settings
from signing_config.schema import SigningSettings

_logger = logging.getLogger("signing_kernel.config")

CONFIG_ENV_VAR = "CONTRACT_SIGNING_CONFIG"

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "defaults.yaml"


def get_active_settings(path: Path | str | None = None) -> SigningSettings:
    """The ONLY public settings entrypoint.

    Resolution order: explicit ``path``, then ``CONTRACT_SIGNING_CONFIG``,
    then the bundled ``defaults.yaml``.

    Non-goals:
        - Does NOT cache; callers hold the returned settings.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = env_path if env_path else _DEFAULT_CONFIG_FILE
    source = Path(path)

    settings = load_settings(source)

    _logger.info(
        "SIGNING_CONFIG_TRACE",
        extra={
            "trace_type": "SIGNING_CONFIG_TRACE",
            "config_path": str(source),
            "checksum": settings.checksum,
            "token_ttl_hours": settings.token_ttl_hours,
            "token_max_attempts": settings.token_max_attempts,
        },
    )
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "SigningSettings",
    "get_active_settings",
]
