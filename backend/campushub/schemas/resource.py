from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from campushub.models.resource import CAPACITY_REQUIRED_TYPES, DEFAULT_ALLOWED_ROLES, ResourceType
from campushub.models.user import UserRole


class ResourceLocation(BaseModel):
    building: str = Field(min_length=1, max_length=200)
    floor: str = Field(min_length=1, max_length=50)
    room_number: str | None = Field(default=None, max_length=50)


def _dedupe_roles(value: list[UserRole] | None) -> list[UserRole] | None:
    if value is None:
        return None
    return list(dict.fromkeys(value))


class ResourceBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: ResourceType = ResourceType.classroom
    location: ResourceLocation
    capacity: int | None = Field(default=None, ge=1, le=10000)
    description: str | None = Field(default=None, max_length=500)
    features: list[str] = Field(default_factory=list, max_length=50)
    reservation_requires_approval: bool = False
    allowed_roles: list[UserRole] = Field(
        default_factory=lambda: [UserRole(item) for item in DEFAULT_ALLOWED_ROLES],
        min_length=1,
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("Name is required")
        return name

    @field_validator("allowed_roles")
    @classmethod
    def dedupe_allowed_roles(cls, value: list[UserRole]) -> list[UserRole]:
        return _dedupe_roles(value)


class ResourceCreate(ResourceBase):
    @model_validator(mode="after")
    def validate_capacity(self) -> "ResourceCreate":
        if self.type in CAPACITY_REQUIRED_TYPES and self.capacity is None:
            raise ValueError("Capacity is required for classrooms and laboratories")
        return self

    def to_model_fields(self) -> dict:
        data = self.model_dump(exclude={"location", "allowed_roles"})
        data.update(self.location.model_dump())
        data["allowed_roles"] = [role.value for role in self.allowed_roles]
        return data


class ResourceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: ResourceType | None = None
    location: ResourceLocation | None = None
    capacity: int | None = Field(default=None, ge=1, le=10000)
    description: str | None = Field(default=None, max_length=500)
    features: list[str] | None = Field(default=None, max_length=50)
    reservation_requires_approval: bool | None = None
    allowed_roles: list[UserRole] | None = Field(default=None, min_length=1)

    @field_validator("allowed_roles")
    @classmethod
    def dedupe_allowed_roles(cls, value: list[UserRole] | None) -> list[UserRole] | None:
        return _dedupe_roles(value)

    def to_model_fields(self) -> dict:
        data = self.model_dump(exclude_unset=True, exclude={"location", "allowed_roles"})
        if self.location is not None:
            data.update(self.location.model_dump())
        if self.allowed_roles is not None:
            data["allowed_roles"] = [role.value for role in self.allowed_roles]
        return data


class ResourceAvailabilityUpdate(BaseModel):
    availability: bool


class ResourceOut(ResourceBase):
    id: str
    availability: bool
    created_by_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
