from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from campushub.models.reservation import RecurrenceFrequency, ReservationStatus


class RecurrencePattern(BaseModel):
    frequency: RecurrenceFrequency
    # 0 = Sunday, 1 = Monday, ... 6 = Saturday
    days_of_week: list[int] = Field(default_factory=list, max_length=7)
    end_date: datetime | None = None

    @field_validator("days_of_week")
    @classmethod
    def validate_days_of_week(cls, value: list[int]) -> list[int]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError("days_of_week values must be between 0 and 6")
        return sorted(set(value))


class ReservationCreate(BaseModel):
    resource_id: str = Field(min_length=1, max_length=36)
    title: str = Field(min_length=1, max_length=100)
    purpose: str = Field(min_length=1, max_length=500)
    # Strings are parsed by the service so malformed dates surface as invalid_time_range.
    start_time: datetime | str
    end_time: datetime | str
    attendees_count: int = Field(default=1, ge=1, le=10000)
    recurrence_pattern: RecurrencePattern | None = None


class ReservationUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    purpose: str | None = Field(default=None, min_length=1, max_length=500)
    start_time: datetime | str | None = None
    end_time: datetime | str | None = None
    attendees_count: int | None = Field(default=None, ge=1, le=10000)
    is_recurring: bool | None = None
    recurrence_pattern: RecurrencePattern | None = None

    def to_patch(self) -> dict:
        patch = self.model_dump(exclude_unset=True, exclude={"recurrence_pattern"})
        if "recurrence_pattern" in self.model_fields_set:
            patch["recurrence_pattern"] = (
                self.recurrence_pattern.model_dump(mode="json") if self.recurrence_pattern is not None else None
            )
        return patch


class ReservationReject(BaseModel):
    rejection_reason: str | None = Field(default=None, max_length=1000)


class ReservationOut(BaseModel):
    id: str
    resource_id: str
    user_id: str
    title: str
    purpose: str
    start_time: datetime
    end_time: datetime
    attendees_count: int
    status: ReservationStatus
    approved_by_id: str | None = None
    approval_date: datetime | None = None
    rejection_reason: str | None = None
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReconciliationOut(BaseModel):
    ran_at: datetime
    completed: list[ReservationOut]
    freed_resource_ids: list[str]
    occupied_resource_ids: list[str]
    failed_resource_ids: list[str]
