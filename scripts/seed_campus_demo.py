"""Seed demo accounts and bookable resources, then print bearer tokens for them.

There is no login endpoint; the printed tokens are the way to call the API locally.

Run:
  PYTHONPATH=backend python scripts/seed_campus_demo.py
"""

from __future__ import annotations

import os
from typing import Iterable

from sqlalchemy import select

from campushub.core.security import create_access_token
from campushub.db.session import SessionLocal
from campushub.models.resource import Resource, ResourceType
from campushub.models.user import User, UserRole

TOKEN_MINUTES = int(os.getenv("DEMO_TOKEN_MINUTES", str(7 * 24 * 60)))


def _env_email(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


DEMO_ACCOUNTS = {
    "admin": {
        "name": "Demo Admin",
        "email": _env_email("DEMO_ADMIN_EMAIL", "admin.demo@campushub.local"),
        "role": UserRole.admin,
        "department": "Facilities",
    },
    "lecturer": {
        "name": "Demo Lecturer",
        "email": _env_email("DEMO_LECTURER_EMAIL", "lecturer.demo@campushub.local"),
        "role": UserRole.lecturer,
        "department": "Computer Science",
    },
    "student": {
        "name": "Demo Student",
        "email": _env_email("DEMO_STUDENT_EMAIL", "student.demo@campushub.local"),
        "role": UserRole.student,
        "department": "Computer Science",
    },
}

DEMO_RESOURCES = [
    {
        "name": "Lecture Hall A1",
        "type": ResourceType.classroom,
        "building": "Main",
        "floor": "1",
        "room_number": "A1",
        "capacity": 120,
        "features": ["projector", "microphone"],
        "reservation_requires_approval": False,
        "allowed_roles": ["lecturer", "admin"],
    },
    {
        "name": "Robotics Lab",
        "type": ResourceType.laboratory,
        "building": "Engineering",
        "floor": "2",
        "room_number": "E-210",
        "capacity": 24,
        "features": ["3d-printer"],
        "reservation_requires_approval": True,
        "allowed_roles": ["lecturer", "admin"],
    },
    {
        "name": "Group Study Room 3",
        "type": ResourceType.facility,
        "building": "Library",
        "floor": "3",
        "room_number": "L-303",
        "capacity": 8,
        "features": ["whiteboard"],
        "reservation_requires_approval": False,
        "allowed_roles": ["student", "lecturer", "admin"],
    },
]


def _upsert_user(*, name: str, email: str, role: UserRole, department: str | None) -> User:
    with SessionLocal() as session:
        existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing is None:
            existing = User(name=name, email=email, role=role, department=department, is_active=True)
            session.add(existing)
        else:
            existing.name = name
            existing.role = role
            existing.department = department
            existing.is_active = True
        session.commit()
        session.refresh(existing)
        return existing


def _upsert_resource(item: dict, admin_user_id: str) -> Resource:
    with SessionLocal() as session:
        existing = session.execute(select(Resource).where(Resource.name == item["name"])).scalar_one_or_none()
        if existing is None:
            existing = Resource(**item, availability=True, created_by_id=admin_user_id)
            session.add(existing)
        else:
            for key, value in item.items():
                setattr(existing, key, value)
        session.commit()
        session.refresh(existing)
        return existing


def _print_summary(users: Iterable[tuple[str, User]], resources: Iterable[Resource]) -> None:
    print("\nDemo accounts ready:")
    for label, user in users:
        token = create_access_token(user.id, role=user.role.value, expires_minutes=TOKEN_MINUTES)
        print(f"  - {label}: {user.email} | role={user.role.value}")
        print(f"    Authorization: Bearer {token}")
    print("\nDemo resources:")
    for resource in resources:
        approval = "approval required" if resource.reservation_requires_approval else "auto-approved"
        print(f"  - {resource.name} ({resource.type.value}, {approval}) id={resource.id}")


def main() -> None:
    users: dict[str, User] = {}
    for key, item in DEMO_ACCOUNTS.items():
        users[key] = _upsert_user(**item)

    resources = [_upsert_resource(item, users["admin"].id) for item in DEMO_RESOURCES]
    _print_summary(users.items(), resources)


if __name__ == "__main__":
    main()
