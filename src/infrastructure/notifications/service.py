# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class notification service.

Entry points for class events (cancellation, schedule change). Each run:

1. Loads the class with its teacher, schedule and roster
2. Resolves the sender (the acting user, else any administrator)
3. Builds the notice text for every channel
4. Stores one sent notice message addressed to the class
5. Delivers it to the active roster, one student at a time
6. Stores and delivers an internal audit message with the outcome

Only a failure to load the class or to resolve its students fails the
run. Channel failures are reported inside the outcome report, and audit
failures are logged without touching the returned result.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings
from src.domains.directory.stores import SqlActorStore, SqlClassStore, SqlStudentStore
from src.domains.directory.types import (
    ActorRef,
    ActorStore,
    ClassDetail,
    ClassSchedule,
    ClassStore,
)
from src.domains.messaging.recipients import RecipientResolutionError, RecipientResolver
from src.domains.messaging.repository import MessageRepository
from src.domains.messaging.tracker import DeliveryTracker
from src.infrastructure.database.models.message import Message
from src.infrastructure.notifications.channels import ChannelType
from src.infrastructure.notifications.dispatcher import (
    DeliveryDispatcher,
    DispatchEnvelope,
    OutcomeReport,
)
from src.models.message import MAX_BODY_LENGTH, AllStudentsRule, SpecificClassRule
from src.utils.datetime import format_long_date_es, parse_day, utc_now
from src.utils.logging import get_logger, log_context

logger = get_logger(__name__)

NOT_SPECIFIED = "No especificado"
CANCELLATION_CLOSING = "La clase ha sido cancelada. Te notificaremos cuando se reprograme."
DETAILS_HEADER = "📋 **Detalles por estudiante:**"


class NotificationError(Exception):
    """Base exception for class notification errors."""

    pass


class ClassLoadError(NotificationError):
    """Raised when the class of a notification run cannot be loaded."""

    pass


class AuditPersistError(NotificationError):
    """Raised when the audit message could not be stored or delivered."""

    pass


@dataclass
class ClassNotice:
    """Notice content for one class event.

    Bodies use the canonical ``**bold**`` markup and are adapted to each
    channel by the templater.
    """

    subject: str
    internal: str
    email: str
    whatsapp: str

    def bodies(self) -> dict[ChannelType, str]:
        return {
            ChannelType.INTERNAL: self.internal,
            ChannelType.EMAIL: self.email,
            ChannelType.WHATSAPP: self.whatsapp,
        }


@dataclass
class NotificationRunResult:
    """Result of a class notification run.

    Attributes:
        success: True when the pipeline ran to completion. Individual
            channel failures are visible only inside results.
        results: Outcome report, when the run completed.
        error: Reason the run failed.
        notice_message_id: Stored notice message, if any.
        audit_message_id: Stored audit message, if any.
    """

    success: bool
    results: OutcomeReport | None = None
    error: str | None = None
    notice_message_id: str | None = None
    audit_message_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "results": self.results.to_dict() if self.results else None,
            "error": self.error,
        }


def describe_date(schedule: ClassSchedule | None) -> str:
    """Long Spanish date of a schedule entry."""
    day = parse_day(schedule.day) if schedule else None
    if day is None:
        return "Fecha no especificada"
    return format_long_date_es(day)


def describe_time(schedule: ClassSchedule | None) -> str:
    """Time range of a schedule entry."""
    if schedule is None or not (schedule.start or schedule.end):
        return "Hora no especificada"
    return f"{schedule.start or '?'} - {schedule.end or '?'}"


def _class_lines(detail: ClassDetail) -> list[str]:
    schedule = detail.first_session
    teacher = detail.teacher.name if detail.teacher else NOT_SPECIFIED
    return [
        f"📚 **Clase:** {detail.title}",
        f"👨‍🏫 **Profesor:** {teacher}",
        f"📅 **Fecha:** {describe_date(schedule)}",
        f"🕐 **Hora:** {describe_time(schedule)}",
        f"📍 **Sala:** {detail.room or NOT_SPECIFIED}",
    ]


def build_cancellation_notice(
    detail: ClassDetail,
    reason: str | None = None,
    cancelled_by: ActorRef | None = None,
) -> ClassNotice:
    """Build the notice sent to students when a class is cancelled."""
    lines = _class_lines(detail)
    if reason:
        lines.append(f"📝 **Motivo:** {reason}")

    external = "\n".join(
        ["🚫 **CLASE CANCELADA**", "", *lines, "", CANCELLATION_CLOSING]
    )

    internal_lines = list(lines)
    if cancelled_by:
        internal_lines.append(f"❌ **Cancelado por:** {cancelled_by.name}")
    internal = "\n".join(
        ["🚫 **CLASE CANCELADA**", "", *internal_lines, "", CANCELLATION_CLOSING]
    )

    return ClassNotice(
        subject=f"Clase Cancelada: {detail.title}",
        internal=internal,
        email=external,
        whatsapp=external,
    )


def build_time_change_notice(
    detail: ClassDetail,
    old_time: str,
    new_time: str,
) -> ClassNotice:
    """Build the notice sent to students when a class is moved."""
    plain = (
        f'Se le informa que su clase "{detail.title}" '
        f"ha sido movida de {old_time} a {new_time}."
    )
    emphasized = (
        f"Se le informa que su clase **{detail.title}** "
        f"ha sido movida de **{old_time}** a **{new_time}**."
    )
    return ClassNotice(
        subject=f"Cambio de horario en clase: {detail.title}",
        internal=plain,
        email=emphasized,
        whatsapp=plain,
    )


def _student_entries(report: OutcomeReport) -> list[str]:
    entries = []
    for detail in report.details:
        delivered = []
        if detail.internal:
            delivered.append("✅ Interno")
        if detail.whatsapp:
            delivered.append("✅ WhatsApp")
        if detail.email:
            delivered.append("✅ Email")
        entry = f"• {detail.display_name} ({detail.rut or '-'}): {', '.join(delivered)}"
        if detail.errors:
            entry += f"\n  ❌ Errores: {', '.join(detail.errors)}"
        entries.append(entry)
    return entries


def _more_students(count: int) -> str:
    return f"… y {count} más"


def fit_details(head: str, entries: list[str], limit: int = MAX_BODY_LENGTH) -> str:
    """Append the per-student entries to head without exceeding limit.

    Entries that do not fit are dropped from the end and counted in a
    closing "… y N más" line. The head is never trimmed unless it alone
    is longer than limit.
    """
    full = "\n".join([head, DETAILS_HEADER, *entries])
    if len(full) <= limit:
        return full

    kept: list[str] = []
    for entry in entries:
        omitted = len(entries) - len(kept) - 1
        candidate = "\n".join([head, DETAILS_HEADER, *kept, entry, _more_students(omitted)])
        if len(candidate) > limit:
            break
        kept.append(entry)

    body = "\n".join([head, DETAILS_HEADER, *kept, _more_students(len(entries) - len(kept))])
    return body[:limit]


def build_summary(report: OutcomeReport) -> dict[str, Any]:
    """Summarize an outcome report for the audit message.

    Returns:
        Dictionary with ``sent/total`` labels per channel, the total
        error count and the per-student detail block.
    """
    total = len(report.details)
    return {
        "internos": f"{report.internal.sent}/{total}",
        "whatsapp": f"{report.whatsapp.sent}/{total}",
        "email": f"{report.email.sent}/{total}",
        "errores": report.total_errors,
        "detalles": "\n".join([DETAILS_HEADER, *_student_entries(report)]),
    }


def build_audit_body(
    detail: ClassDetail,
    report: OutcomeReport,
    reason: str | None,
    actor: ActorRef | None,
    actor_label: str,
) -> str:
    """Build the body of the internal audit message.

    The class lines and statistics always appear in full. The
    per-student block is shortened so the body stays within
    MAX_BODY_LENGTH.
    """
    summary = build_summary(report)
    lines = ["📊 **RESUMEN DE NOTIFICACIONES ENVIADAS**", "", *_class_lines(detail)]
    if reason:
        lines.append(f"📝 **Motivo:** {reason}")
    if actor:
        lines.append(f"❌ **{actor_label}:** {actor.name or actor.email or NOT_SPECIFIED}")
    lines.extend(
        [
            "",
            "📈 **Estadísticas de envío:**",
            f"• Mensajes internos: {summary['internos']}",
            f"• WhatsApp: {summary['whatsapp']}",
            f"• Email: {summary['email']}",
            f"• Errores: {summary['errores']}",
            "",
        ]
    )
    return fit_details("\n".join(lines), _student_entries(report))


class NotificationService:
    """Notifies students about class events.

    Attributes:
        db: Async database session.
        classes: Class lookups.
        actors: Staff lookups.
        resolver: Recipient resolver.
        dispatcher: Delivery dispatcher.
        repository: Message store.
    """

    def __init__(
        self,
        db: AsyncSession,
        classes: ClassStore,
        actors: ActorStore,
        resolver: RecipientResolver,
        dispatcher: DeliveryDispatcher,
        repository: MessageRepository | None = None,
    ) -> None:
        self.db = db
        self.classes = classes
        self.actors = actors
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.repository = repository or MessageRepository(db)

    @classmethod
    def from_session(cls, db: AsyncSession, settings: Settings) -> "NotificationService":
        """Wire the service with SQL stores and settings-based channels."""
        classes = SqlClassStore(db)
        return cls(
            db=db,
            classes=classes,
            actors=SqlActorStore(db),
            resolver=RecipientResolver(SqlStudentStore(db), classes),
            dispatcher=DeliveryDispatcher.from_settings(DeliveryTracker(db), settings),
        )

    async def notify_class_cancellation(
        self,
        class_id: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> NotificationRunResult:
        """Notify the students of a class that it was cancelled.

        Args:
            class_id: Cancelled class.
            reason: Optional cancellation reason shown to students.
            actor_id: User who cancelled the class.

        Returns:
            NotificationRunResult with the outcome report.
        """
        with log_context(class_id=class_id, notification_event="class_cancelled"):
            try:
                detail = await self._load_class(class_id)
            except ClassLoadError as e:
                logger.warning("Class cancellation notification aborted", error=str(e))
                return NotificationRunResult(success=False, error=str(e))

            actor = await self._find_actor(actor_id)
            run = await self._notify(detail, build_cancellation_notice(detail, reason, actor), actor)
            if run.success:
                run.audit_message_id = await self._store_audit(
                    detail,
                    run.results,
                    subject=f"Registro: Clase Cancelada - {detail.title}",
                    reason=reason,
                    actor=actor,
                    actor_label="Cancelado por",
                )
            return run

    async def notify_class_time_change(
        self,
        class_id: str,
        old_time: str,
        new_time: str,
        actor_id: str | None = None,
    ) -> NotificationRunResult:
        """Notify the students of a class that its time changed.

        A class without a teacher still notifies its students. The audit
        message is only stored when the class has a teacher.

        Args:
            class_id: Rescheduled class.
            old_time: Previous time label, e.g. "10:00-11:00".
            new_time: New time label.
            actor_id: User who changed the schedule.

        Returns:
            NotificationRunResult with the outcome report.
        """
        with log_context(class_id=class_id, notification_event="class_time_changed"):
            try:
                detail = await self._load_class(class_id)
            except ClassLoadError as e:
                logger.warning("Class time change notification aborted", error=str(e))
                return NotificationRunResult(success=False, error=str(e))

            actor = await self._find_actor(actor_id)
            notice = build_time_change_notice(detail, old_time, new_time)
            run = await self._notify(detail, notice, actor)
            if run.success:
                run.audit_message_id = await self._store_audit(
                    detail,
                    run.results,
                    subject=f"Registro: Cambio de Horario - {detail.title}",
                    reason=f"Cambio de horario de {old_time} a {new_time}",
                    actor=actor,
                    actor_label="Actualizado por",
                )
            return run

    async def _load_class(self, class_id: str) -> ClassDetail:
        try:
            detail = await self.classes.find_by_id_with_roster(class_id)
        except Exception as e:
            raise ClassLoadError(f"No se pudo obtener información de la clase: {e}") from e
        if detail is None:
            raise ClassLoadError("No se pudo obtener información de la clase")
        return detail

    async def _find_actor(self, actor_id: str | None) -> ActorRef | None:
        if not actor_id:
            return None
        return await self.actors.find_by_id(actor_id)

    async def _resolve_sender(self, actor: ActorRef | None) -> ActorRef | None:
        if actor is not None:
            return actor
        admin = await self.actors.find_any_admin()
        if admin is None:
            logger.warning("No administrator available as system sender")
        return admin

    async def _notify(
        self,
        detail: ClassDetail,
        notice: ClassNotice,
        actor: ActorRef | None,
    ) -> NotificationRunResult:
        try:
            recipients = await self.resolver.resolve(SpecificClassRule(class_id=detail.id))
        except RecipientResolutionError as e:
            logger.error("Could not resolve class recipients", error=str(e))
            return NotificationRunResult(success=False, error=str(e))

        sender = await self._resolve_sender(actor)
        notice_id = None
        if sender is not None:
            notice_message = await self.repository.add(
                self._sent_message(
                    sender,
                    subject=notice.subject,
                    body=notice.internal,
                    recipient_kind="specific_class",
                    recipient_ref=detail.id,
                    message_type="notification",
                    priority="high",
                    deliver_email=True,
                    deliver_whatsapp=True,
                )
            )
            notice_id = notice_message.id

        envelope = DispatchEnvelope(
            message_id=notice_id,
            subject=notice.subject,
            bodies=notice.bodies(),
            channels=frozenset(ChannelType),
        )
        report = await self.dispatcher.deliver_all(envelope, recipients)

        logger.info(
            "Class notification completed",
            students=len(recipients),
            sent=report.total_sent,
            errors=report.total_errors,
        )
        return NotificationRunResult(
            success=True,
            results=report,
            notice_message_id=notice_id,
        )

    async def _store_audit(
        self,
        detail: ClassDetail,
        report: OutcomeReport,
        subject: str,
        reason: str | None,
        actor: ActorRef | None,
        actor_label: str,
    ) -> str | None:
        """Store and deliver the audit message. Never raises.

        Classes without a teacher get no audit message.
        """
        if detail.teacher is None:
            logger.info("Class has no teacher, skipping audit message")
            return None
        try:
            return await self._persist_audit(detail, report, subject, reason, actor, actor_label)
        except AuditPersistError as e:
            logger.error("Audit message not stored", error=str(e))
            return None

    async def _persist_audit(
        self,
        detail: ClassDetail,
        report: OutcomeReport,
        subject: str,
        reason: str | None,
        actor: ActorRef | None,
        actor_label: str,
    ) -> str | None:
        sender = await self._resolve_sender(actor)
        if sender is None:
            logger.warning("Skipping audit message: no sender available")
            return None

        body = build_audit_body(detail, report, reason, actor, actor_label)
        try:
            async with self.db.begin_nested():
                audit = await self.repository.add(
                    self._sent_message(
                        sender,
                        subject=subject,
                        body=body,
                        recipient_kind="all_students",
                        recipient_ref=None,
                        message_type="info",
                        priority="medium",
                    )
                )
                recipients = await self.resolver.resolve(AllStudentsRule())
                await self.dispatcher.deliver_all(DispatchEnvelope.for_message(audit), recipients)
        except Exception as e:
            raise AuditPersistError(str(e)) from e

        logger.info("Audit message stored", audit_message_id=audit.id)
        return audit.id

    @staticmethod
    def _sent_message(
        sender: ActorRef,
        subject: str,
        body: str,
        recipient_kind: str,
        recipient_ref: str | None,
        message_type: str,
        priority: str,
        deliver_email: bool = False,
        deliver_whatsapp: bool = False,
    ) -> Message:
        now = utc_now()
        return Message(
            sender_id=sender.id,
            recipient_kind=recipient_kind,
            recipient_ref=recipient_ref,
            subject=subject[:200],
            body=body,
            message_type=message_type,
            priority=priority,
            status="sent",
            sent_at=now,
            created_at=now,
            updated_at=now,
            deliver_internal=True,
            deliver_email=deliver_email,
            deliver_whatsapp=deliver_whatsapp,
            tags=["class_notification"],
            category="class_event",
            created_by=sender.id,
        )
