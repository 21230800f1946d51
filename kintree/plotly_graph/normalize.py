from __future__ import annotations
from datetime import date
from typing import Any, Optional


def _year(d: Optional[date]) -> str:
    return str(d.year) if d is not None else "?"


def display_label(person: Any) -> str:
    """
    Short label drawn on the node:
      - 'First Last' on one line when short
      - 'First\\nLast' when the full name is longer than 16 characters
    """
    first = (person.first_name or "").strip()
    last = (person.last_name or "").strip()
    if not last:
        return first
    if len(first) + len(last) + 1 > 16:
        return f"{first}\n{last}"
    return f"{first} {last}"


def hover_label(person: Any) -> str:
    """
    Full label for hover:
      'First Last (1920 – 1990)' or 'First Last (b. 1950)' for the living,
      followed by the description on its own line when there is one.
    """
    name = f"{person.first_name} {person.last_name}".strip()
    died = getattr(person, "date_of_death", None)
    if died is not None:
        life = f"{_year(person.date_of_birth)} – {_year(died)}"
    else:
        life = f"b. {_year(person.date_of_birth)}"
    label = f"{name} ({life})"

    description = (getattr(person, "description", "") or "").strip()
    if description:
        label = f"{label}\n{description}"
    return label
