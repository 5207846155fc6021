"""Domain name helpers used by provider adapters."""

from __future__ import annotations

from typing import Literal

WildcardStyle = Literal["keep", "dot", "bare"]


def is_wildcard_domain(domain: str) -> bool:
    return domain.startswith("*.")


def normalize_wildcard_domain(domain: str, style: WildcardStyle = "dot") -> str:
    """Rewrite a ``*.`` prefixed domain the way a provider API expects.

    ``dot`` turns ``*.example.com`` into ``.example.com``, ``bare`` into
    ``example.com`` and ``keep`` leaves it untouched. Non-wildcard domains
    are only stripped of surrounding whitespace.
    """
    domain = domain.strip()
    if not is_wildcard_domain(domain) or style == "keep":
        return domain
    if style == "dot":
        return domain[1:]
    return domain[2:]
