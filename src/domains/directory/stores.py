# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementations of the directory store protocols."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.domains.directory.types import (
    ACTIVE_STATUS,
    ActorRef,
    ClassDetail,
    ClassSchedule,
    Recipient,
    RosterEntry,
)
from src.infrastructure.database.models.school import (
    ClassStudent,
    MusicClass,
    Student,
    User,
)

logger = logging.getLogger(__name__)


def to_recipient(student: Student) -> Recipient:
    """Convert a student row to its read-only view."""
    return Recipient(
        id=student.id,
        display_name=student.name,
        email=student.email,
        phone=student.phone,
        rut=student.rut,
        instrument=student.instrument,
        level=student.level,
        active=student.status == ACTIVE_STATUS,
    )


def to_actor(user: User) -> ActorRef:
    """Convert a user row to an actor reference."""
    return ActorRef(
        id=user.id,
        name=user.username,
        email=user.email,
        role=user.role,
    )


def _to_schedule(entry: dict[str, Any]) -> ClassSchedule:
    return ClassSchedule(
        day=entry.get("day"),
        start=entry.get("start"),
        end=entry.get("end"),
    )


class SqlStudentStore:
    """Student lookups backed by the students table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_by_id(self, student_id: str) -> Recipient | None:
        student = await self.db.get(Student, student_id)
        return to_recipient(student) if student else None

    async def find_all_active(
        self,
        instrument: str | None = None,
        level: str | None = None,
    ) -> list[Recipient]:
        """Return all active students, optionally filtered.

        The full active roster is loaded at once. The school has tens to
        a few hundred students.
        """
        stmt = select(Student).where(Student.status == ACTIVE_STATUS)
        if instrument:
            stmt = stmt.where(Student.instrument == instrument)
        if level:
            stmt = stmt.where(Student.level == level)
        stmt = stmt.order_by(Student.name, Student.id)

        result = await self.db.execute(stmt)
        return [to_recipient(student) for student in result.scalars().all()]


class SqlClassStore:
    """Class lookups backed by music_classes and class_students."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_by_id_with_roster(self, class_id: str) -> ClassDetail | None:
        stmt = (
            select(MusicClass)
            .where(MusicClass.id == class_id)
            .options(
                selectinload(MusicClass.teacher),
                selectinload(MusicClass.roster).selectinload(ClassStudent.student),
            )
        )
        result = await self.db.execute(stmt)
        music_class = result.scalar_one_or_none()
        if music_class is None:
            return None

        return ClassDetail(
            id=music_class.id,
            title=music_class.title,
            room=music_class.room,
            teacher=to_actor(music_class.teacher) if music_class.teacher else None,
            schedule=[_to_schedule(entry) for entry in music_class.schedule or []],
            roster=[
                RosterEntry(
                    student=to_recipient(entry.student) if entry.student else None,
                    status=entry.status,
                )
                for entry in music_class.roster
            ],
        )

    async def find_class_ids_for_student(self, student_id: str) -> list[str]:
        stmt = select(ClassStudent.class_id).where(
            ClassStudent.student_id == student_id,
            ClassStudent.status == ACTIVE_STATUS,
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class SqlActorStore:
    """Staff lookups backed by the users table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_any_admin(self) -> ActorRef | None:
        stmt = (
            select(User)
            .where(User.role == "admin", User.is_active.is_(True))
            .order_by(User.created_at)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        user = result.scalar_one_or_none()
        if user is None:
            logger.warning("No active administrator found")
            return None
        return to_actor(user)

    async def find_by_id(self, actor_id: str) -> ActorRef | None:
        user = await self.db.get(User, actor_id)
        return to_actor(user) if user else None
