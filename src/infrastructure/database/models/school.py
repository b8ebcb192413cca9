# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""School directory models: staff users, students, classes and rosters.

These tables are owned by the administration side of the application.
The messaging and notification code only reads them.
"""

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, new_uuid


class User(Base, TimestampMixin):
    """Staff account (administrator or teacher)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="teacher")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def is_admin(self) -> bool:
        """Check if the user holds the administrator role."""
        return self.role == "admin"


class Student(Base, TimestampMixin):
    """Enrolled student of the school."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    rut: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    instrument: Mapped[str | None] = mapped_column(String(100), nullable=True)
    level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    __table_args__ = (Index("ix_students_status", "status"),)


class MusicClass(Base, TimestampMixin):
    """A scheduled class with its room, teacher and roster.

    schedule holds a list of {"day": "DD-MM-YYYY", "start": "HH:MM",
    "end": "HH:MM"} entries.
    """

    __tablename__ = "music_classes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    room: Mapped[str | None] = mapped_column(String(100), nullable=True)
    teacher_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    schedule: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    teacher: Mapped[User | None] = relationship(User)
    roster: Mapped[list["ClassStudent"]] = relationship(
        back_populates="music_class",
        order_by="ClassStudent.position",
        cascade="all, delete-orphan",
    )


class ClassStudent(Base, TimestampMixin):
    """Roster entry linking a student to a class."""

    __tablename__ = "class_students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    class_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("music_classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("students.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    music_class: Mapped[MusicClass] = relationship(back_populates="roster")
    student: Mapped[Student | None] = relationship(Student)

    __table_args__ = (
        Index("ix_class_students_class_id", "class_id"),
        Index("ix_class_students_student_id", "student_id"),
    )
