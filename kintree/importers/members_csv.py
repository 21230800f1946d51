from __future__ import annotations
from collections import Counter
from pathlib import Path
from typing import List, Optional

import pandas as pd

from ..schemas import FamilyMemberCreate

REQUIRED_COLUMNS = {"first_name", "last_name", "date_of_birth"}
OPTIONAL_COLUMNS = ("date_of_death", "description", "parent_marriage_id", "marriage_id")


def _clean(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    s = str(value).strip()
    if s == "" or s.lower() in ("none", "nan"):
        return None
    return s


def _token(value) -> Optional[int]:
    s = _clean(value)
    # tokens read as floats when the column has blanks
    return None if s is None else int(float(s))


def read_members_csv(path: str | Path) -> List[FamilyMemberCreate]:
    """
    Reads a members CSV. Lines starting with '#' are comments.
    Required columns: first_name, last_name, date_of_birth (YYYY-MM-DD).
    Optional: date_of_death, description, parent_marriage_id, marriage_id.
    """
    df = pd.read_csv(path, comment="#", dtype=str)
    df.columns = [c.strip() for c in df.columns]

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)} in file {path}")

    members: List[FamilyMemberCreate] = []
    for line, r in enumerate(df.to_dict(orient="records"), start=2):
        try:
            members.append(
                FamilyMemberCreate(
                    first_name=_clean(r["first_name"]) or "",
                    last_name=_clean(r["last_name"]) or "",
                    date_of_birth=_clean(r["date_of_birth"]),
                    date_of_death=_clean(r.get("date_of_death")),
                    description=_clean(r.get("description")) or "",
                    parent_marriage_id=_token(r.get("parent_marriage_id")),
                    marriage_id=_token(r.get("marriage_id")),
                )
            )
        except ValueError as e:
            raise ValueError(f"Row {line}: {e}") from e
    return members


def detect_duplicate_names(members: List[FamilyMemberCreate]) -> List[str]:
    """Warnings for repeated (first_name, last_name) pairs. Nothing is renamed."""
    counts = Counter((m.first_name, m.last_name) for m in members)
    return [
        f'"{first} {last}" appears {n} times; relatives are matched by name, so updates will touch all of them'
        for (first, last), n in counts.items()
        if n > 1
    ]
