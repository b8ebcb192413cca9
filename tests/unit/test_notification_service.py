# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for class cancellation and time change notifications."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.domains.directory.types import (
    ActorRef,
    ClassDetail,
    ClassSchedule,
    Recipient,
    RosterEntry,
)
from src.domains.messaging.recipients import RecipientResolver
from src.infrastructure.database.models.message import Message
from src.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryRequest,
)
from src.infrastructure.notifications.dispatcher import (
    DeliveryDispatcher,
    OutcomeReport,
    RecipientOutcome,
)
from src.infrastructure.notifications.service import (
    NotificationService,
    build_cancellation_notice,
    build_summary,
    fit_details,
    build_time_change_notice,
    describe_time,
)
from src.infrastructure.notifications.templates import ContentTemplater
from src.models.message import MAX_BODY_LENGTH

TEACHER = ActorRef(id="t1", name="Profesor Soto", email="soto@vac.cl", role="teacher")
ADMIN = ActorRef(id="a1", name="Admin", email="admin@vac.cl", role="admin")
ALICE = Recipient(id="s1", display_name="Alice", email="alice@vac.cl", rut="11.111.111-1")
BOB = Recipient(id="s2", display_name="Bob", email="bob@vac.cl", phone="600 111 222")


class RecordingChannel(BaseChannel):
    """Channel that accepts every request."""

    def __init__(self, channel_type: ChannelType) -> None:
        super().__init__(timeout_seconds=1.0)
        self._type = channel_type
        self.requests: list[DeliveryRequest] = []

    @property
    def channel_type(self) -> ChannelType:
        return self._type

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        self.requests.append(request)
        return self.create_success_result()


def _guitar(
    roster: list[Recipient] | None = None,
    teacher: ActorRef | None = TEACHER,
) -> ClassDetail:
    students = [ALICE, BOB] if roster is None else roster
    return ClassDetail(
        id="c1",
        title="Guitar 101",
        room="Sala 2",
        teacher=teacher,
        schedule=[ClassSchedule(day="14-03-2025", start="10:00", end="11:00")],
        roster=[RosterEntry(student=s) for s in students],
    )


@pytest.fixture
def db() -> MagicMock:
    """Mock session whose savepoints propagate errors."""
    session = MagicMock()
    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=None)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested.return_value = savepoint
    return session


@pytest.fixture
def stored() -> list[Message]:
    """Messages stored through the mock repository."""
    return []


@pytest.fixture
def repository(stored: list[Message]) -> MagicMock:
    """Create mock message repository assigning IDs on add."""

    async def add(message: Message) -> Message:
        message.id = f"msg-{len(stored) + 1}"
        stored.append(message)
        return message

    mock = MagicMock()
    mock.add = AsyncMock(side_effect=add)
    return mock


@pytest.fixture
def channels() -> dict[ChannelType, RecordingChannel]:
    return {channel_type: RecordingChannel(channel_type) for channel_type in ChannelType}


def _service(
    db: MagicMock,
    repository: MagicMock,
    channels: dict[ChannelType, RecordingChannel],
    detail: ClassDetail | None,
) -> NotificationService:
    classes = MagicMock()
    classes.find_by_id_with_roster = AsyncMock(return_value=detail)
    students = MagicMock()
    students.find_all_active = AsyncMock(return_value=[ALICE, BOB])
    actors = MagicMock()
    actors.find_by_id = AsyncMock(return_value=TEACHER)
    actors.find_any_admin = AsyncMock(return_value=ADMIN)
    tracker = MagicMock()
    tracker.db = db
    tracker.mark_delivered = AsyncMock(return_value=True)

    return NotificationService(
        db=db,
        classes=classes,
        actors=actors,
        resolver=RecipientResolver(students, classes),
        dispatcher=DeliveryDispatcher(
            templater=ContentTemplater(school_name="Escuela VAC"),
            tracker=tracker,
            channels=channels,
        ),
        repository=repository,
    )


class TestClassCancellation:
    """Tests for NotificationService.notify_class_cancellation."""

    @pytest.mark.asyncio
    async def test_notifies_roster_and_stores_audit(
        self,
        db: MagicMock,
        repository: MagicMock,
        stored: list[Message],
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test Guitar 101 with Alice (email only) and Bob (email and phone)."""
        service = _service(db, repository, channels, _guitar())

        run = await service.notify_class_cancellation("c1", reason="Enfermedad", actor_id="t1")

        assert run.success is True
        assert run.results.internal.sent == 2
        assert run.results.email.sent == 2
        assert run.results.whatsapp.sent == 1
        assert run.results.total_errors == 0
        assert len(run.to_dict()["results"]["detalles"]) == 2

        notice, audit = stored
        assert notice.status == "sent"
        assert notice.recipient_kind == "specific_class"
        assert notice.recipient_ref == "c1"
        assert notice.subject == "Clase Cancelada: Guitar 101"
        assert notice.sender_id == "t1"
        assert "**Motivo:** Enfermedad" in notice.body
        assert "Cancelado por:** Profesor Soto" in notice.body

        assert audit.status == "sent"
        assert audit.recipient_kind == "all_students"
        assert audit.subject == "Registro: Clase Cancelada - Guitar 101"
        assert "Mensajes internos: 2/2" in audit.body
        assert run.notice_message_id == notice.id
        assert run.audit_message_id == audit.id

    @pytest.mark.asyncio
    async def test_external_bodies_omit_actor(
        self,
        db: MagicMock,
        repository: MagicMock,
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test that email and WhatsApp do not name who cancelled."""
        service = _service(db, repository, channels, _guitar())

        await service.notify_class_cancellation("c1", actor_id="t1")

        assert "Cancelado por" not in channels[ChannelType.EMAIL].requests[0].body
        assert "Cancelado por" not in channels[ChannelType.WHATSAPP].requests[0].body
        assert channels[ChannelType.WHATSAPP].requests[0].destination == "600 111 222"

    @pytest.mark.asyncio
    async def test_missing_class_fails(
        self,
        db: MagicMock,
        repository: MagicMock,
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test that a class that cannot be loaded fails the run."""
        service = _service(db, repository, channels, None)

        run = await service.notify_class_cancellation("missing")

        assert run.success is False
        assert run.error == "No se pudo obtener información de la clase"
        repository.add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_run(
        self,
        db: MagicMock,
        repository: MagicMock,
        stored: list[Message],
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test that an audit error is logged and the run still succeeds."""
        service = _service(db, repository, channels, _guitar())
        service.resolver.students.find_all_active.side_effect = RuntimeError("db down")

        run = await service.notify_class_cancellation("c1", actor_id="t1")

        assert run.success is True
        assert run.audit_message_id is None
        assert run.results.internal.sent == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_admin_sender(
        self,
        db: MagicMock,
        repository: MagicMock,
        stored: list[Message],
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test that runs without an actor are sent by an administrator."""
        service = _service(db, repository, channels, _guitar())

        await service.notify_class_cancellation("c1")

        assert {message.sender_id for message in stored} == {"a1"}


    @pytest.mark.asyncio
    async def test_audit_body_fits_for_large_roster(
        self,
        db: MagicMock,
        repository: MagicMock,
        stored: list[Message],
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test that a long per-student block is shortened, not the stats."""
        roster = [
            Recipient(
                id=f"s{i}",
                display_name=f"Estudiante Número {i:02d} del Conservatorio",
                email=f"estudiante{i}@vac.cl",
                rut=f"{i:02d}.345.678-9",
            )
            for i in range(40)
        ]
        service = _service(db, repository, channels, _guitar(roster=roster))

        run = await service.notify_class_cancellation("c1", reason="Enfermedad", actor_id="t1")

        audit = stored[-1]
        assert run.results.internal.sent == 40
        assert audit.recipient_kind == "all_students"
        assert len(audit.body) <= MAX_BODY_LENGTH
        assert "• Mensajes internos: 40/40" in audit.body
        assert "• Email: 40/40" in audit.body
        listed = audit.body.count("• Estudiante Número")
        assert 0 < listed < 40
        assert audit.body.endswith(f"… y {40 - listed} más")


class TestClassTimeChange:
    """Tests for NotificationService.notify_class_time_change."""

    @pytest.mark.asyncio
    async def test_zero_students(
        self,
        db: MagicMock,
        repository: MagicMock,
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test that an empty roster completes with empty counts."""
        service = _service(db, repository, channels, _guitar(roster=[]))

        run = await service.notify_class_time_change("c1", "10:00-11:00", "14:00-15:00")

        assert run.success is True
        assert run.to_dict()["results"] == {
            "internos": {"enviados": 0, "errores": 0},
            "whatsapp": {"enviados": 0, "errores": 0},
            "email": {"enviados": 0, "errores": 0},
            "detalles": [],
        }

    @pytest.mark.asyncio
    async def test_without_teacher_skips_audit(
        self,
        db: MagicMock,
        repository: MagicMock,
        stored: list[Message],
        channels: dict[ChannelType, RecordingChannel],
    ) -> None:
        """Test that students are notified but no audit is stored."""
        service = _service(db, repository, channels, _guitar(teacher=None))

        run = await service.notify_class_time_change(
            "c1", "10:00-11:00", "14:00-15:00", actor_id="t1"
        )

        assert run.success is True
        assert run.results.internal.sent == 2
        assert run.audit_message_id is None
        assert [message.subject for message in stored] == [
            "Cambio de horario en clase: Guitar 101"
        ]


class TestNoticeBuilders:
    """Tests for notice text builders."""

    def test_cancellation_notice(self) -> None:
        notice = build_cancellation_notice(_guitar(), reason="Feriado", cancelled_by=ADMIN)

        assert notice.subject == "Clase Cancelada: Guitar 101"
        assert "📅 **Fecha:** viernes, 14 de marzo de 2025" in notice.email
        assert "🕐 **Hora:** 10:00 - 11:00" in notice.email
        assert "📍 **Sala:** Sala 2" in notice.email
        assert "📝 **Motivo:** Feriado" in notice.whatsapp
        assert "❌ **Cancelado por:** Admin" in notice.internal
        assert "Cancelado por" not in notice.email

    def test_cancellation_without_details(self) -> None:
        """Test the placeholders for missing class data."""
        detail = ClassDetail(id="c2", title="Piano")

        notice = build_cancellation_notice(detail)

        assert "Profesor:** No especificado" in notice.internal
        assert "Fecha:** Fecha no especificada" in notice.internal
        assert "Sala:** No especificado" in notice.internal
        assert "Motivo" not in notice.internal

    def test_time_change_notice(self) -> None:
        notice = build_time_change_notice(_guitar(), "10:00-11:00", "14:00-15:00")

        assert notice.subject == "Cambio de horario en clase: Guitar 101"
        assert notice.internal == (
            'Se le informa que su clase "Guitar 101" ha sido movida de 10:00-11:00 a 14:00-15:00.'
        )
        assert "**14:00-15:00**" in notice.email
        assert notice.whatsapp == notice.internal

    def test_describe_time_placeholder(self) -> None:
        assert describe_time(None) == "Hora no especificada"
        assert describe_time(ClassSchedule(start="09:00")) == "09:00 - ?"


class TestBuildSummary:
    """Tests for the audit summary."""

    def test_counts_and_details(self) -> None:
        report = OutcomeReport()
        alice = RecipientOutcome(recipient_id="s1", display_name="Alice", rut="1-9")
        alice.attempted = {ChannelType.INTERNAL, ChannelType.EMAIL}
        alice.internal = True
        alice.errors = ["Email: rejected"]
        bob = RecipientOutcome(recipient_id="s2", display_name="Bob")
        bob.attempted = {ChannelType.INTERNAL, ChannelType.WHATSAPP}
        bob.internal = True
        bob.whatsapp = True
        report.add(alice)
        report.add(bob)

        summary = build_summary(report)

        assert summary["internos"] == "2/2"
        assert summary["whatsapp"] == "1/2"
        assert summary["email"] == "0/2"
        assert summary["errores"] == 1
        assert "• Alice (1-9): ✅ Interno" in summary["detalles"]
        assert "  ❌ Errores: Email: rejected" in summary["detalles"]
        assert "• Bob (-): ✅ Interno, ✅ WhatsApp" in summary["detalles"]


class TestFitDetails:
    """Tests for the length cap on the audit detail block."""

    def test_short_block_is_unchanged(self) -> None:
        body = fit_details("Resumen\n", ["• Ana", "• Bruno"])

        assert body == "Resumen\n\n📋 **Detalles por estudiante:**\n• Ana\n• Bruno"

    def test_trailing_entries_are_counted(self) -> None:
        entries = [f"• Estudiante {i:02d}" for i in range(10)]

        body = fit_details("Resumen\n", entries, limit=100)

        assert len(body) <= 100
        assert body.startswith("Resumen\n")
        listed = body.count("• Estudiante")
        assert body.endswith(f"… y {10 - listed} más")
