"""
Process-level runtime introspection.

Everything here is constant for the lifetime of the process and is read
once when the payload assembler is built.
"""

import platform
from typing import Optional

from ..models.telemetry import OSInfo

TRUE_FLAG_VALUES = frozenset({"1", "true", "on", "yes"})
FALSE_FLAG_VALUES = frozenset({"0", "false", "off", "no"})


def parse_flag(raw: Optional[str]) -> Optional[bool]:
    """Parse an ini-style boolean, returning None when it is not one."""
    if raw is None:
        return None

    normalized = raw.strip().lower()
    if normalized in TRUE_FLAG_VALUES:
        return True
    if normalized in FALSE_FLAG_VALUES:
        return False
    return None


def resolve_config_flag(raw: Optional[str]) -> Optional[str]:
    """
    Render a config flag for reporting.

    Boolean-like values become "On" or "Off"; anything else, the empty
    string included, is reported verbatim.
    """
    parsed = parse_flag(raw)
    if parsed is None:
        return raw
    return "On" if parsed else "Off"


def describe_os() -> OSInfo:
    return OSInfo(
        name=platform.system() or None,
        release=platform.release() or None,
        architecture=platform.machine() or None,
    )


def interpreter_version() -> str:
    return platform.python_version()
