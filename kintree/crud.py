import logging
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from .models import FamilyMember, UnionToken
from .schemas import FamilyMemberCreate, RelativeUpdate

logger = logging.getLogger(__name__)


def list_members(db: Session):
    return db.query(FamilyMember).order_by(FamilyMember.id.asc()).all()


def find_by_name(db: Session, first_name: str, last_name: str):
    return (
        db.query(FamilyMember)
        .filter(FamilyMember.first_name == first_name, FamilyMember.last_name == last_name)
        .order_by(FamilyMember.id.asc())
        .all()
    )


def issue_union_token(db: Session) -> int:
    """Issue a new union token, greater than every token seen so far.

    Tokens already stored on members (including legacy timestamp tokens)
    count as seen, so an issued token never joins an existing union.
    """
    highest = max(
        db.scalar(select(func.max(UnionToken.id))) or 0,
        db.scalar(select(func.max(FamilyMember.marriage_id))) or 0,
        db.scalar(select(func.max(FamilyMember.parent_marriage_id))) or 0,
    )
    token = UnionToken(id=highest + 1)
    try:
        db.add(token); db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return token.id


def create_member_with_relative(db: Session, new_member: FamilyMemberCreate, relative: RelativeUpdate):
    """Insert ``new_member`` and write union tokens onto ``relative`` in one transaction.

    The relative is matched by (first_name, last_name). Every matching row is
    updated; duplicates are logged since the pair is not guaranteed unique.
    Raises LookupError (after rolling back) when nothing matches.
    """
    try:
        matches = find_by_name(db, relative.first_name, relative.last_name)
        if not matches:
            raise LookupError(f"No family member named {relative.first_name} {relative.last_name}")
        if len(matches) > 1:
            logger.warning(
                "Relative name %s %s matches %d members; updating all of them",
                relative.first_name, relative.last_name, len(matches),
            )

        fields = relative.token_fields()
        for row in matches:
            for name, value in fields.items():
                setattr(row, name, value)

        created = FamilyMember(**new_member.model_dump())
        db.add(created)
        db.commit()
    except (LookupError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(created)
    db.refresh(matches[0])
    logger.info(
        "Created member %s %s (id=%s), updated relative %s %s with %s",
        created.first_name, created.last_name, created.id,
        relative.first_name, relative.last_name, fields,
    )
    return created, matches[0]


def bulk_create_members(db: Session, members: list[FamilyMemberCreate], clear_first: bool = False) -> int:
    try:
        if clear_first:
            db.query(FamilyMember).delete()
        db.add_all([FamilyMember(**m.model_dump()) for m in members])
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return len(members)
