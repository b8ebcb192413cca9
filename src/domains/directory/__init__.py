# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-only views of students, classes and staff.

The directory tables belong to the school administration side. Messaging
and notifications consume them through the store protocols defined here.
"""

from src.domains.directory.stores import (
    SqlActorStore,
    SqlClassStore,
    SqlStudentStore,
)
from src.domains.directory.types import (
    ActorRef,
    ActorStore,
    ClassDetail,
    ClassSchedule,
    ClassStore,
    Recipient,
    RosterEntry,
    StudentStore,
)

__all__ = [
    "ActorRef",
    "ActorStore",
    "ClassDetail",
    "ClassSchedule",
    "ClassStore",
    "Recipient",
    "RosterEntry",
    "SqlActorStore",
    "SqlClassStore",
    "SqlStudentStore",
    "StudentStore",
]
