"""``${name}`` placeholder resolution for script file paths."""

import os
import re
from typing import Dict, Mapping, Optional

VARIABLE = re.compile(r"\$\{[a-zA-Z]+\w*\}")


def _escaped(text: str, start: int) -> bool:
    """Return True if the token at ``start`` is preceded by an odd run of backslashes."""
    n = 0
    i = start - 1
    while i >= 0 and text[i] == "\\":
        n += 1
        i -= 1
    return n % 2 != 0


def resolve_variables(text: str, values: Optional[Mapping[str, str]] = None) -> str:
    """Substitute ``${name}`` tokens with values from ``values`` (default: ``os.environ``).

    Names with no value are left untouched, and so is an escaped token (odd
    number of preceding backslashes) even when the same name also appears
    unescaped.  Each distinct name is looked up once.
    """
    if values is None:
        values = os.environ
    lookups: Dict[str, Optional[str]] = {}

    def _substitute(match: "re.Match") -> str:
        if _escaped(text, match.start()):
            return match.group()
        name = match.group()[2:-1]
        if name not in lookups:
            lookups[name] = values.get(name)
        replacement = lookups[name]
        return match.group() if replacement is None else replacement

    return VARIABLE.sub(_substitute, text)
