from fastapi import APIRouter, Depends, Query, status

from campushub.api.deps import get_current_user, get_reservation_service, get_resource_registry, require_roles
from campushub.models.reservation import ReservationStatus
from campushub.models.resource import ResourceType
from campushub.models.user import User, UserRole
from campushub.schemas.reservation import ReservationOut
from campushub.schemas.resource import ResourceAvailabilityUpdate, ResourceCreate, ResourceOut, ResourceUpdate
from campushub.services.reservations import ReservationService
from campushub.services.resources import ResourceRegistry

router = APIRouter()


@router.get("/", response_model=list[ResourceOut])
def list_resources(
    resource_type: ResourceType | None = Query(default=None, alias="type"),
    current_user: User = Depends(get_current_user),
    registry: ResourceRegistry = Depends(get_resource_registry),
) -> list[ResourceOut]:
    return registry.list_resources(resource_type)


@router.post("/", response_model=ResourceOut, status_code=status.HTTP_201_CREATED)
def create_resource(
    payload: ResourceCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    registry: ResourceRegistry = Depends(get_resource_registry),
) -> ResourceOut:
    return registry.create_resource(payload, created_by_id=current_user.id)


@router.get("/{resource_id}", response_model=ResourceOut)
def get_resource(
    resource_id: str,
    current_user: User = Depends(get_current_user),
    registry: ResourceRegistry = Depends(get_resource_registry),
) -> ResourceOut:
    return registry.get_resource(resource_id)


@router.put("/{resource_id}", response_model=ResourceOut)
def update_resource(
    resource_id: str,
    payload: ResourceUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    registry: ResourceRegistry = Depends(get_resource_registry),
) -> ResourceOut:
    return registry.update_resource(resource_id, payload)


@router.patch("/{resource_id}/availability", response_model=ResourceOut)
def update_resource_availability(
    resource_id: str,
    payload: ResourceAvailabilityUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    registry: ResourceRegistry = Depends(get_resource_registry),
) -> ResourceOut:
    return registry.set_availability(resource_id, payload.availability)


@router.delete("/{resource_id}")
def delete_resource(
    resource_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    registry: ResourceRegistry = Depends(get_resource_registry),
) -> dict:
    registry.delete_resource(resource_id)
    return {"success": True}


@router.get("/{resource_id}/reservations", response_model=list[ReservationOut])
def list_resource_reservations(
    resource_id: str,
    reservation_status: list[ReservationStatus] | None = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> list[ReservationOut]:
    return service.list_reservations_for_resource(resource_id, reservation_status)
