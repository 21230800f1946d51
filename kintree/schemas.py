from datetime import date
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Literal

Relationship = Literal["sibling", "child", "parent", "spouse"]
RELATIONSHIPS = ("sibling", "child", "parent", "spouse")


class FamilyMemberCreate(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: date
    date_of_death: Optional[date] = None
    description: str = ""
    parent_marriage_id: Optional[int] = None
    marriage_id: Optional[int] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("date_of_death")
    @classmethod
    def validate_date_of_death(cls, v, info):
        born = info.data.get("date_of_birth")
        if v is not None and born is not None and v < born:
            raise ValueError("date_of_death is before date_of_birth")
        return v


class FamilyMemberOut(FamilyMemberCreate):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None

    @property
    def identity(self) -> tuple[str, str]:
        return (self.first_name, self.last_name)


class RelativeUpdate(BaseModel):
    """Identity of an existing member plus the union tokens to write on it.

    Only the token fields that are explicitly set are written, so an update
    that names only ``marriage_id`` leaves ``parent_marriage_id`` untouched.
    """
    first_name: str
    last_name: str
    parent_marriage_id: Optional[int] = None
    marriage_id: Optional[int] = None

    @property
    def identity(self) -> tuple[str, str]:
        return (self.first_name, self.last_name)

    def token_fields(self) -> dict:
        return self.model_dump(include={"parent_marriage_id", "marriage_id"}, exclude_unset=True)


class CreateFamilyMemberRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_family_member: FamilyMemberCreate = Field(alias="newFamilyMember")
    relative: RelativeUpdate


class CreateFamilyMemberResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_family_member: FamilyMemberOut = Field(alias="newFamilyMember")
    relative: FamilyMemberOut


class UnionTokenOut(BaseModel):
    token: int


class GraphElement(BaseModel):
    data: dict


class GraphOut(BaseModel):
    nodes: list[GraphElement]
    edges: list[GraphElement]
