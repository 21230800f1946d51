from datetime import date, datetime, timezone
from sqlalchemy import BigInteger, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

class Base(DeclarativeBase):
    pass

class FamilyMember(Base):
    __tablename__ = "family_members"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    date_of_death: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # grouping tokens, not foreign keys: spouses share marriage_id, a child's
    # parent_marriage_id is the marriage_id of its parents' union
    parent_marriage_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    marriage_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

class UnionToken(Base):
    __tablename__ = "union_tokens"
    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
