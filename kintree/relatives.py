"""Work out which union tokens an "add relative" request writes.

Nothing here mutates the member list: the caller gets a proposal, sends it
to the store, and applies the store's confirmed records afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple

from .schemas import RELATIONSHIPS, FamilyMemberCreate, RelativeUpdate


class RelativeValidationError(ValueError):
    """The request can't be sent as is; the user has to correct the form."""


@dataclass(frozen=True)
class Proposal:
    new_member: FamilyMemberCreate
    relative: RelativeUpdate
    token: int
    minted: bool


# relationship -> (relative field the token comes from, new member field, relative field written)
_TOKEN_RULES = {
    "spouse": ("marriage_id", "marriage_id", "marriage_id"),
    "child": ("marriage_id", "parent_marriage_id", "marriage_id"),
    "parent": ("parent_marriage_id", "marriage_id", "parent_marriage_id"),
    "sibling": ("parent_marriage_id", "parent_marriage_id", "parent_marriage_id"),
}


def find_relative(members: Sequence[Any], identity: Tuple[str, str]) -> Any:
    """First member whose (first_name, last_name) equals ``identity``.

    Name pairs are not guaranteed unique; the first match wins here and the
    store updates every match.
    """
    for m in members:
        if (m.first_name, m.last_name) == identity:
            return m
    raise RelativeValidationError(f"{identity[0]} {identity[1]} is not in the family list")


async def propose_relative(
    members: Sequence[Any],
    relative_identity: Optional[Tuple[str, str]],
    relationship: Optional[str],
    new_member: FamilyMemberCreate,
    issue_token: Callable[[], Awaitable[int]],
) -> Proposal:
    """Validate the form and build the request; a token is minted only when
    the relative has none to share, and only after validation passed."""
    if not relative_identity:
        raise RelativeValidationError("Select the relative the new member is related to")
    if not relationship:
        raise RelativeValidationError("Select a relationship type")
    if relationship not in RELATIONSHIPS:
        raise RelativeValidationError(f"Unknown relationship type: {relationship}")
    relative = find_relative(members, relative_identity)

    source_field, new_field, relative_field = _TOKEN_RULES[relationship]
    token = getattr(relative, source_field)
    minted = token is None
    if minted:
        token = await issue_token()

    new_member = new_member.model_copy(update={new_field: token})
    update = RelativeUpdate(
        first_name=relative.first_name,
        last_name=relative.last_name,
        **{relative_field: token},
    )
    return Proposal(new_member=new_member, relative=update, token=token, minted=minted)
