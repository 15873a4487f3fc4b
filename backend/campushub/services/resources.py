from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campushub.core.exceptions import AppError, DuplicateResourceError, NotFoundError
from campushub.models.reservation import Reservation
from campushub.models.resource import CAPACITY_REQUIRED_TYPES, Resource, ResourceType
from campushub.schemas.resource import ResourceCreate, ResourceUpdate

logger = logging.getLogger(__name__)


class ResourceRegistry:
    def __init__(self, db: Session) -> None:
        self._db = db

    def list_resources(self, resource_type: ResourceType | None = None) -> list[Resource]:
        query = select(Resource).order_by(Resource.name.asc())
        if resource_type is not None:
            query = query.where(Resource.type == resource_type)
        return list(self._db.execute(query).scalars())

    def get_resource(self, resource_id: str) -> Resource:
        resource = self._db.get(Resource, resource_id)
        if resource is None:
            raise NotFoundError("Resource", resource_id)
        return resource

    def _ensure_unique_name(self, name: str, *, exclude_id: str | None = None) -> None:
        query = select(Resource.id).where(Resource.name == name)
        if exclude_id is not None:
            query = query.where(Resource.id != exclude_id)
        if self._db.execute(query).first() is not None:
            raise DuplicateResourceError(name)

    def create_resource(self, payload: ResourceCreate, *, created_by_id: str) -> Resource:
        self._ensure_unique_name(payload.name)
        resource = Resource(**payload.to_model_fields(), created_by_id=created_by_id, availability=True)
        self._db.add(resource)
        try:
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            raise DuplicateResourceError(payload.name) from exc
        self._db.refresh(resource)
        logger.info("Resource %s (%s) created by %s", resource.id, resource.name, created_by_id)
        return resource

    def update_resource(self, resource_id: str, payload: ResourceUpdate) -> Resource:
        resource = self.get_resource(resource_id)
        data = payload.to_model_fields()
        if "name" in data:
            data["name"] = data["name"].strip()
            self._ensure_unique_name(data["name"], exclude_id=resource_id)

        resource_type = data.get("type", resource.type)
        capacity = data["capacity"] if "capacity" in data else resource.capacity
        if resource_type in CAPACITY_REQUIRED_TYPES and capacity is None:
            raise AppError("Capacity is required for classrooms and laboratories", status_code=400)

        for key, value in data.items():
            setattr(resource, key, value)
        try:
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            raise DuplicateResourceError(data.get("name", resource.name)) from exc
        self._db.refresh(resource)
        return resource

    def set_availability(self, resource_id: str, available: bool) -> Resource:
        resource = self.get_resource(resource_id)
        resource.availability = available
        self._db.commit()
        self._db.refresh(resource)
        logger.info("Resource %s availability manually set to %s", resource_id, available)
        return resource

    def delete_resource(self, resource_id: str) -> None:
        resource = self.get_resource(resource_id)
        self._db.execute(delete(Reservation).where(Reservation.resource_id == resource_id))
        self._db.delete(resource)
        self._db.commit()
        logger.info("Resource %s deleted with its reservations", resource_id)
