"""
Settings loader (``signing_config.loader``).

Responsibility
--------------
Reads a YAML settings document and parses it into a frozen
``SigningSettings``.  Internal tooling: runtime callers go through
``signing_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown keys are rejected; a typo never silently falls back to a default.
* Token lifetime and attempt ceiling must equal the fixed policy values.
* Every validation failure raises ``ValueError`` naming the offending key.
* ``compute_checksum`` is deterministic for the same parsed document.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import re
from pathlib import Path
from typing import Any

import yaml

from signing_config.schema import (
    LOG_LEVELS,
    TOKEN_MAX_ATTEMPTS,
    TOKEN_TTL_HOURS,
    SigningSettings,
)

_KNOWN_KEYS = frozenset({
    "database_url",
    "signing_base_url",
    "token_ttl_hours",
    "token_max_attempts",
    "contract_number_prefix",
    "log_level",
})

_PREFIX_PATTERN = re.compile(r"^[A-Z]{1,8}$")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file.  An empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"settings file {path} must contain a mapping at the top level")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _require_text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key}: must be a non-empty string")
    return value.strip()


def _fixed_int(data: dict[str, Any], key: str, required: int) -> int:
    value = data.get(key, required)
    # bool is an int subclass; "true" is not a count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: must be an integer, got {value!r}")
    if value != required:
        raise ValueError(f"{key}: fixed at {required}, got {value!r}")
    return value


def parse_settings(data: dict[str, Any]) -> SigningSettings:
    """Validate a parsed YAML mapping into SigningSettings."""
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ValueError(f"{unknown[0]}: unknown settings key")

    database_url = _require_text(data, "database_url")
    signing_base_url = _require_text(data, "signing_base_url")
    if not signing_base_url.startswith(("http://", "https://")):
        raise ValueError("signing_base_url: must be an http(s) URL")

    prefix = data.get("contract_number_prefix", "C")
    if not isinstance(prefix, str) or not _PREFIX_PATTERN.match(prefix):
        raise ValueError(
            f"contract_number_prefix: must be 1-8 upper-case letters, got {prefix!r}"
        )

    log_level = str(data.get("log_level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"log_level: unknown level {log_level!r}")

    return SigningSettings(
        database_url=database_url,
        signing_base_url=signing_base_url.rstrip("/"),
        token_ttl_hours=_fixed_int(data, "token_ttl_hours", TOKEN_TTL_HOURS),
        token_max_attempts=_fixed_int(data, "token_max_attempts", TOKEN_MAX_ATTEMPTS),
        contract_number_prefix=prefix,
        log_level=log_level,
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> SigningSettings:
    return parse_settings(load_yaml_file(path))
