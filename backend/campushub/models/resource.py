import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from campushub.db.base import Base


class ResourceType(str, Enum):
    classroom = "classroom"
    laboratory = "laboratory"
    equipment = "equipment"
    facility = "facility"
    other = "other"


CAPACITY_REQUIRED_TYPES = frozenset({ResourceType.classroom, ResourceType.laboratory})
DEFAULT_ALLOWED_ROLES = ["lecturer", "admin"]


class Resource(Base):
    __tablename__ = "resources"
    __table_args__ = (Index("ix_resources_type_building_floor", "type", "building", "floor"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    type: Mapped[ResourceType] = mapped_column(
        SAEnum(ResourceType, name="resource_type"),
        nullable=False,
        default=ResourceType.classroom,
    )
    building: Mapped[str] = mapped_column(String(200), nullable=False)
    floor: Mapped[str] = mapped_column(String(50), nullable=False)
    room_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    availability: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reservation_requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allowed_roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=lambda: list(DEFAULT_ALLOWED_ROLES))
    created_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def location(self) -> dict:
        return {"building": self.building, "floor": self.floor, "room_number": self.room_number}

    def allows_role(self, role: str) -> bool:
        return role in set(self.allowed_roles or [])
