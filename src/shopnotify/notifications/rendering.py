"""Template rendering and value formatting."""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders with values from *variables*.

    Uses a single-pass regex replacement so that a placeholder only ever
    matches its exact name (``{order}`` never touches ``{order_number}``)
    and a substituted value is never itself re-expanded. ``None`` renders
    as an empty string; unknown placeholders are preserved in the output.
    """

    def _replace(m: re.Match) -> str:
        key = m.group(1)
        if key not in variables:
            return m.group(0)
        value = variables[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, template)


def format_amount(amount: float | int | None) -> str:
    """Format an amount as a plain rounded integer: 4500.4 -> ``"4500 CFA"``."""
    return f"{math.floor((amount or 0) + 0.5)} CFA"


def format_date(value: date | datetime) -> str:
    """Format a date the way customers read it: ``dd/mm/yyyy``."""
    return value.strftime("%d/%m/%Y")


def placeholders(template: str) -> set[str]:
    """Return the variable names referenced by a template."""
    return set(_PLACEHOLDER.findall(template))
