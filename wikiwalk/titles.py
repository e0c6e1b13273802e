"""Title canonicalization.

Node identity is the canonical form of a title: trimmed, whitespace runs
collapsed, spaces replaced by underscores (the same form Wikipedia uses in
article URLs). ``pretty`` is for display only.
"""
import re
from typing import Any

SEPARATOR = "_"

_WHITESPACE = re.compile(r"\s+")


def canon(raw: Any) -> str:
    if raw is None:
        return ""
    title = _WHITESPACE.sub(" ", str(raw).strip())
    return title.replace(" ", SEPARATOR)


def pretty(title: str) -> str:
    return title.replace(SEPARATOR, " ")
