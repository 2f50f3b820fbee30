"""
Data masking engine for sensitive field detection and masking.

Keys are matched against the configured rules as whole words, so a rule
such as ``cc`` masks ``account_cc_number`` but leaves ``accepted`` alone.
Only leaf values are replaced; nested containers are always traversed.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

import structlog

from ..config import DEFAULT_MASKED_FIELDS

logger = structlog.get_logger(__name__)

AUTHORIZATION_RULE = "authorization"
AUTHORIZATION_SCHEMES = frozenset({"basic", "bearer", "negotiate"})


def _compile_rule(rule: str) -> "Pattern[str]":
    # Underscores and hyphens separate words in field names
    return re.compile(
        r"(?<![0-9A-Za-z])" + re.escape(rule) + r"(?![0-9A-Za-z])",
        re.IGNORECASE,
    )


def _is_blank(value: Any) -> bool:
    # None, False, zero and "" carry nothing worth hiding; "0" does
    if value is None:
        return True
    return isinstance(value, (bool, int, float, str)) and not value


def mask_value(value: Any) -> Any:
    """
    Replace a value with one asterisk per character.

    Blank scalars (``None``, ``False``, zero, ``""``) are returned unchanged.
    """
    if _is_blank(value):
        return value
    return "*" * len(str(value))


def mask_authorization(value: Any) -> Optional[str]:
    """
    Mask the credential of an ``<scheme> <credential>`` header value.

    Returns None when the value has no recognised scheme, in which case the
    caller leaves the value untouched.
    """
    if not isinstance(value, str):
        return None

    parts = value.split(" ")
    if len(parts) < 2:
        return None

    scheme, credential = parts[0], parts[1]
    if scheme.lower() not in AUTHORIZATION_SCHEMES:
        return None

    return f"{scheme} {'*' * len(credential)}"


class MaskingEngine:
    """
    Masks sensitive fields in request and response data.

    Features:
    - Ordered, case-insensitive rules matched as whole words
    - Scheme-preserving masking for authorization headers
    - Deep traversal of nested dicts and lists
    """

    def __init__(self, rules: Optional[Iterable[str]] = None) -> None:
        source = DEFAULT_MASKED_FIELDS if rules is None else rules
        self.rules: List[str] = [rule for rule in source if rule]
        self._compiled_patterns: List[Tuple[str, "Pattern[str]"]] = [
            (rule, _compile_rule(rule)) for rule in self.rules
        ]
        logger.debug("Masking engine initialized", rules=len(self.rules))

    def mask(self, data: Any) -> Any:
        """
        Return a masked copy of ``data``.

        Args:
            data: A dict or list, possibly nested

        Returns:
            The masked structure, or an empty dict for non-container input
        """
        if not isinstance(data, (dict, list)):
            return {}

        if not self._compiled_patterns:
            return data

        return self._mask_container(data)

    def _mask_container(self, container: Any) -> Any:
        if isinstance(container, dict):
            return {
                key: self._mask_item(key, value)
                for key, value in container.items()
            }
        return [self._mask_item(index, value) for index, value in enumerate(container)]

    def _mask_item(self, key: Any, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return self._mask_container(value)
        return self._mask_leaf(str(key), value)

    def _mask_leaf(self, key: str, value: Any) -> Any:
        masked = value

        # Every matching rule is evaluated against the original value
        for rule, pattern in self._compiled_patterns:
            if not pattern.search(key):
                continue

            if rule.lower() == AUTHORIZATION_RULE:
                authorization = mask_authorization(value)
                if authorization is not None:
                    masked = authorization
            else:
                masked = mask_value(value)

        return masked


def mask_fields(data: Any, rules: Optional[Iterable[str]] = None) -> Any:
    """
    Convenience function to mask ``data`` with ``rules``.

    Falls back to the default rule list when ``rules`` is None.
    """
    return MaskingEngine(rules).mask(data)


def first_header_values(headers: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """Collapse a header multi-map to the first value per header name."""
    collapsed: Dict[str, str] = {}
    for name, value in headers:
        collapsed.setdefault(name.lower(), value)
    return collapsed
