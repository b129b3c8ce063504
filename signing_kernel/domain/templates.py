"""
Contract template rendering.

Templates mark variables as ``[NAME]`` with upper-case letters and
underscores.  Rendering is literal text substitution: values are inserted
as given, unknown placeholders stay in place, and nothing is escaped.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

VARIABLE_PATTERN = re.compile(r"\[([A-Z_]+)\]")


def extract_variables(body: str) -> tuple[str, ...]:
    """Distinct placeholder names in order of first appearance."""
    seen: dict[str, None] = {}
    for match in VARIABLE_PATTERN.finditer(body):
        seen.setdefault(match.group(1), None)
    return tuple(seen)


def render_template(body: str, values: Mapping[str, str]) -> str:
    """Substitute ``[NAME]`` placeholders from ``values``."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in values:
            return str(values[name])
        return match.group(0)

    return VARIABLE_PATTERN.sub(_replace, body)


def missing_variables(body: str, values: Mapping[str, str]) -> tuple[str, ...]:
    """Placeholders in ``body`` that ``values`` does not supply."""
    return tuple(name for name in extract_variables(body) if name not in values)
