# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Directory views and store protocols.

Views are plain dataclasses decoupled from the ORM so that resolvers,
templaters and dispatchers can be exercised with hand-built records.
"""

from dataclasses import dataclass, field
from typing import Protocol

ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class Recipient:
    """A student as seen by the notification subsystem.

    Attributes:
        id: Student ID.
        display_name: Name shown in messages and reports.
        email: Email address, if any.
        phone: Phone number as entered, if any.
        rut: National ID shown in outcome reports.
        instrument: Main instrument.
        level: Course level.
        active: Whether the student is currently active.
    """

    id: str
    display_name: str
    email: str | None = None
    phone: str | None = None
    rut: str | None = None
    instrument: str | None = None
    level: str | None = None
    active: bool = True

    @property
    def has_email(self) -> bool:
        return bool(self.email and self.email.strip())

    @property
    def has_phone(self) -> bool:
        return bool(self.phone and self.phone.strip())


@dataclass(frozen=True)
class ActorRef:
    """A staff member acting as a message sender."""

    id: str
    name: str
    email: str | None = None
    role: str = "teacher"


@dataclass(frozen=True)
class ClassSchedule:
    """One scheduled session of a class.

    day uses the DD-MM-YYYY format stored by the administration side.
    """

    day: str | None = None
    start: str | None = None
    end: str | None = None


@dataclass(frozen=True)
class RosterEntry:
    """A class roster line. student is None when the reference is dangling."""

    student: Recipient | None
    status: str = ACTIVE_STATUS

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS


@dataclass
class ClassDetail:
    """A class with its teacher, schedule and populated roster."""

    id: str
    title: str
    room: str | None = None
    teacher: ActorRef | None = None
    schedule: list[ClassSchedule] = field(default_factory=list)
    roster: list[RosterEntry] = field(default_factory=list)

    @property
    def first_session(self) -> ClassSchedule | None:
        return self.schedule[0] if self.schedule else None

    def active_students(self) -> list[Recipient]:
        """Return students of active roster entries, in roster order."""
        return [
            entry.student
            for entry in self.roster
            if entry.is_active and entry.student is not None
        ]


class StudentStore(Protocol):
    """Lookups over students."""

    async def find_by_id(self, student_id: str) -> Recipient | None: ...

    async def find_all_active(
        self,
        instrument: str | None = None,
        level: str | None = None,
    ) -> list[Recipient]: ...


class ClassStore(Protocol):
    """Lookups over classes and their rosters."""

    async def find_by_id_with_roster(self, class_id: str) -> ClassDetail | None: ...

    async def find_class_ids_for_student(self, student_id: str) -> list[str]: ...


class ActorStore(Protocol):
    """Lookups over staff users."""

    async def find_any_admin(self) -> ActorRef | None: ...

    async def find_by_id(self, actor_id: str) -> ActorRef | None: ...
