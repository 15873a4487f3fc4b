from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campushub.api.deps import get_current_user, get_db, get_reservation_service, require_roles
from campushub.models.reservation import ReservationStatus
from campushub.models.user import User, UserRole
from campushub.schemas.reservation import (
    ReconciliationOut,
    ReservationCreate,
    ReservationOut,
    ReservationReject,
    ReservationUpdate,
)
from campushub.services.notifications import SqlNotificationService
from campushub.services.reconciler import run_expiry_reconciliation
from campushub.services.reservation_store import SqlAlchemyReservationRepository
from campushub.services.reservations import ReservationService

router = APIRouter()


@router.get("/", response_model=list[ReservationOut])
def list_reservations(
    reservation_status: ReservationStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(require_roles(UserRole.admin)),
    service: ReservationService = Depends(get_reservation_service),
) -> list[ReservationOut]:
    return service.list_all_reservations(reservation_status)


@router.get("/me", response_model=list[ReservationOut])
def list_my_reservations(
    reservation_status: ReservationStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> list[ReservationOut]:
    return service.list_user_reservations(current_user.id, reservation_status)


@router.post("/", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
def create_reservation(
    payload: ReservationCreate,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    recurrence = payload.recurrence_pattern.model_dump(mode="json") if payload.recurrence_pattern else None
    return service.create_reservation(
        resource_id=payload.resource_id,
        user_id=current_user.id,
        user_role=current_user.role,
        title=payload.title,
        purpose=payload.purpose,
        start_time=payload.start_time,
        end_time=payload.end_time,
        attendees_count=payload.attendees_count,
        recurrence=recurrence,
    )


@router.post("/reconcile", response_model=ReconciliationOut)
def reconcile_reservations(
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> ReconciliationOut:
    result = run_expiry_reconciliation(SqlAlchemyReservationRepository(db), SqlNotificationService(db))
    return ReconciliationOut(
        ran_at=result.ran_at,
        completed=[ReservationOut.model_validate(item) for item in result.completed],
        freed_resource_ids=[item.id for item in result.freed_resources],
        occupied_resource_ids=[item.id for item in result.occupied_resources],
        failed_resource_ids=result.failed_resource_ids,
    )


@router.get("/{reservation_id}", response_model=ReservationOut)
def get_reservation(
    reservation_id: str,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    return service.get_reservation(reservation_id, current_user.id, current_user.role)


@router.put("/{reservation_id}", response_model=ReservationOut)
def update_reservation(
    reservation_id: str,
    payload: ReservationUpdate,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    return service.update_reservation(reservation_id, current_user.id, current_user.role, payload.to_patch())


@router.put("/{reservation_id}/approve", response_model=ReservationOut)
def approve_reservation(
    reservation_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    return service.approve_reservation(reservation_id, current_user.id)


@router.put("/{reservation_id}/reject", response_model=ReservationOut)
def reject_reservation(
    reservation_id: str,
    payload: ReservationReject,
    current_user: User = Depends(require_roles(UserRole.admin)),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    return service.reject_reservation(reservation_id, current_user.id, payload.rejection_reason)


@router.put("/{reservation_id}/cancel", response_model=ReservationOut)
def cancel_reservation(
    reservation_id: str,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    return service.cancel_reservation(reservation_id, current_user.id, current_user.role)


@router.delete("/{reservation_id}")
def delete_reservation(
    reservation_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    service.delete_reservation(reservation_id, current_user.id)
    return {"success": True}
