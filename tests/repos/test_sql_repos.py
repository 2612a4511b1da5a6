"""SQL repositories against an in-memory SQLite database."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import replace
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import progress_service.db.tables  # noqa: F401
from progress_service.core.errors import InvalidTransitionError
from progress_service.db.engine import Base
from progress_service.models.aggregate import OverallStatus
from progress_service.models.progress import (
    AttendanceStatus,
    ProgressPatch,
    ProgressStatus,
)
from progress_service.repos.enrollment_provider import InMemoryEnrollmentProvider
from progress_service.repos.sql_progress_repo import SqlProgressRepo
from progress_service.repos.sql_session_repo import SqlSessionRepo
from progress_service.repos.sql_template_repo import SqlTemplateRepo
from progress_service.services import assembler
from progress_service.services.event_sink import InMemoryProgressEventSink
from progress_service.services.session_service import TrainingSessionService
from tests.conftest import FakeClock, assessment, break_, course, students


@pytest.fixture
def factory() -> Iterator[sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(engine, expire_on_commit=False)
    engine.dispose()


def test_template_round_trip(factory: sessionmaker[Session]) -> None:
    repo = SqlTemplateRepo(factory)
    t = assembler.create_template(
        [course(1, 90), break_(2), assessment(3, passing_score=70.0)],
        name="Day",
        code="d1",
        description="first day",
    )
    repo.save(t)

    loaded = repo.get(t.id)
    assert loaded == t
    assert repo.get(uuid4()) is None


def test_template_save_replaces_components(factory: sessionmaker[Session]) -> None:
    repo = SqlTemplateRepo(factory)
    t = assembler.create_template([course(1), course(2), course(3)], code="x")
    repo.save(t)

    edited = assembler.remove_component(
        assembler.move_component(t, t.components[2].id, 1), t.components[0].id
    )
    repo.save(edited)

    assert repo.get(t.id) == edited
    assert len(repo.list_all()) == 1


def test_session_round_trip_and_enrollment_update(
    factory: sessionmaker[Session],
) -> None:
    repo = SqlSessionRepo(factory)
    t = assembler.create_template([course(1), assessment(2)])
    session, _ = assembler.instantiate_session(
        t, students("Ada", "Bob"), session_id=uuid4(), title="Cohort", now=1000
    )
    repo.add(session)
    assert repo.get(session.id) == session

    with pytest.raises(ValueError):
        repo.add(session)

    bob = replace(session.enrollments[1], attendance_percentage=88.0)
    updated = repo.update_enrollment(session.id, bob)
    assert updated is not None
    assert updated.enrollments[1].attendance_percentage == 88.0
    assert updated.enrollments[0] == session.enrollments[0]
    assert repo.update_enrollment(uuid4(), bob) is None


def test_progress_put_and_list(factory: sessionmaker[Session]) -> None:
    t = assembler.create_template([course(1), course(2)])
    session, records = assembler.instantiate_session(
        t, students("Ada"), session_id=uuid4(), title="", now=1000
    )
    SqlSessionRepo(factory).add(session)
    repo = SqlProgressRepo(factory)
    repo.add_many(records)

    changed = replace(
        records[0],
        status=ProgressStatus.IN_PROGRESS,
        attendance_status=AttendanceStatus.PRESENT,
        start_time=1100,
        instructor_notes="on time",
    )
    repo.put(changed)

    key = (changed.session_id, changed.enrollment_id, changed.component_id)
    assert repo.get(*key) == changed
    assert sorted(
        repo.list_by_session(session.id), key=lambda r: str(r.component_id)
    ) == sorted([changed, records[1]], key=lambda r: str(r.component_id))
    assert repo.list_by_session(uuid4()) == []


def test_progress_put_missing_record(factory: sessionmaker[Session]) -> None:
    t = assembler.create_template([course(1)])
    _, records = assembler.instantiate_session(
        t, students("Ada"), session_id=uuid4(), title="", now=1000
    )
    with pytest.raises(KeyError):
        SqlProgressRepo(factory).put(records[0])


def test_progress_put_rejects_stale_expected(factory: sessionmaker[Session]) -> None:
    t = assembler.create_template([assessment(1)])
    session, records = assembler.instantiate_session(
        t, students("Ada"), session_id=uuid4(), title="", now=1000
    )
    repo = SqlProgressRepo(factory)
    repo.add_many(records)
    read = records[0]
    started = replace(read, status=ProgressStatus.IN_PROGRESS, start_time=1100)
    repo.put(started, expected=read)

    with pytest.raises(InvalidTransitionError):
        repo.put(replace(read, status=ProgressStatus.SKIPPED), expected=read)
    assert repo.get(read.session_id, read.enrollment_id, read.component_id) == started


def test_service_on_sql_repos(factory: sessionmaker[Session]) -> None:
    provider = InMemoryEnrollmentProvider()
    svc = TrainingSessionService(
        templates=SqlTemplateRepo(factory),
        sessions=SqlSessionRepo(factory),
        progress=SqlProgressRepo(factory),
        enrollments=provider,
        sink=InMemoryProgressEventSink(),
        clock=FakeClock(),
    )
    t = svc.create_template([course(1), assessment(2)], name="Day", code="d1")
    session_id = uuid4()
    provider.register(session_id, students("Ada"))
    session = svc.instantiate_session(session_id, t.id)
    ada = session.enrollments[0].enrollment_id
    lesson, quiz = (c.id for c in session.components)

    S = ProgressStatus
    svc.update_progress(session_id, ada, lesson, ProgressPatch(status=S.IN_PROGRESS))
    svc.update_progress(session_id, ada, lesson, ProgressPatch(status=S.COMPLETED))
    svc.update_progress(
        session_id, ada, quiz, ProgressPatch(status=S.IN_PROGRESS, score=50)
    )

    progress = svc.get_student_progress(session_id, ada)
    assert progress.overall_status is OverallStatus.FAILED
    assert progress.overall_score == 50.0


class _InterleavingClock(FakeClock):
    """Runs ``before_next`` once, between an update's read and its write."""

    def __init__(self) -> None:
        super().__init__()
        self.before_next: Callable[[], object] | None = None

    def __call__(self) -> int:
        hook, self.before_next = self.before_next, None
        if hook is not None:
            hook()
        return super().__call__()


def _sql_service(
    factory: sessionmaker[Session], provider: InMemoryEnrollmentProvider, clock
) -> TrainingSessionService:
    return TrainingSessionService(
        templates=SqlTemplateRepo(factory),
        sessions=SqlSessionRepo(factory),
        progress=SqlProgressRepo(factory),
        enrollments=provider,
        sink=InMemoryProgressEventSink(),
        clock=clock,
    )


def test_two_instances_cannot_both_score_a_single_attempt(
    factory: sessionmaker[Session],
) -> None:
    provider = InMemoryEnrollmentProvider()
    clock_a = _InterleavingClock()
    svc_a = _sql_service(factory, provider, clock_a)
    svc_b = _sql_service(factory, provider, FakeClock())

    t = svc_a.create_template([assessment(1, max_attempts=1)], name="Quiz", code="q1")
    session_id = uuid4()
    provider.register(session_id, students("Ada"))
    session = svc_a.instantiate_session(session_id, t.id)
    ada = session.enrollments[0].enrollment_id
    quiz = session.components[0].id
    S = ProgressStatus
    svc_a.update_progress(session_id, ada, quiz, ProgressPatch(status=S.IN_PROGRESS))

    # Instance B scores after A has read the record but before A writes.
    clock_a.before_next = lambda: svc_b.update_progress(
        session_id, ada, quiz, ProgressPatch(score=95)
    )
    with pytest.raises(InvalidTransitionError):
        svc_a.update_progress(session_id, ada, quiz, ProgressPatch(score=50))

    final = svc_b.get_progress(session_id, ada, quiz)
    assert (final.status, final.score, final.attempts) == (S.PASSED, 95.0, 1)
    assert [(e.previous_status, e.new_status) for e in svc_a.sink.events] == [
        (S.NOT_STARTED, S.IN_PROGRESS)
    ]
    assert [(e.previous_status, e.new_status) for e in svc_b.sink.events] == [
        (S.IN_PROGRESS, S.PASSED)
    ]
