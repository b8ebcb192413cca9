# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Recipient resolution.

Expands a message's recipient rule into concrete students at send time.
"""

from __future__ import annotations

import logging

from src.domains.directory.types import ClassStore, Recipient, StudentStore
from src.models.message import (
    AllStudentsRule,
    RecipientRule,
    SpecificClassRule,
    SpecificStudentRule,
)

logger = logging.getLogger(__name__)


class RecipientResolutionError(Exception):
    """Raised when a recipient rule could not be expanded."""

    pass


class RecipientResolver:
    """Resolves recipient rules against the student and class stores.

    Attributes:
        students: Student lookups.
        classes: Class lookups.
    """

    def __init__(self, students: StudentStore, classes: ClassStore) -> None:
        self.students = students
        self.classes = classes

    async def resolve(self, rule: RecipientRule) -> list[Recipient]:
        """Expand a recipient rule.

        Args:
            rule: The rule to expand.

        Returns:
            Recipients in store order. Empty when nobody matches.

        Raises:
            RecipientResolutionError: If a store lookup fails.
        """
        try:
            match rule:
                case SpecificStudentRule(student_id=student_id):
                    student = await self.students.find_by_id(student_id)
                    recipients = [student] if student else []
                case AllStudentsRule(filters=filters):
                    recipients = await self.students.find_all_active(
                        instrument=filters.instrument if filters else None,
                        level=filters.level if filters else None,
                    )
                case SpecificClassRule(class_id=class_id):
                    recipients = await self._resolve_class(class_id)
                case _:
                    raise RecipientResolutionError(f"Unsupported recipient rule: {rule!r}")
        except RecipientResolutionError:
            raise
        except Exception as e:
            raise RecipientResolutionError(
                f"Failed to resolve {rule.kind} recipients: {e}"
            ) from e

        logger.debug("Resolved %d recipients for %s", len(recipients), rule.kind)
        return recipients

    async def _resolve_class(self, class_id: str) -> list[Recipient]:
        detail = await self.classes.find_by_id_with_roster(class_id)
        if detail is None:
            logger.warning("Class %s not found, no recipients resolved", class_id)
            return []
        return detail.active_students()
