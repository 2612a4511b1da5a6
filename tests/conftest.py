from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from progress_service.main import app
from progress_service.models.component import (
    ComponentDefinition,
    ComponentType,
    Template,
)
from progress_service.models.session import Enrollment, SessionInstance
from progress_service.services.session_service import (
    enrollment_provider,
    training_service,
)

# Ensure repo root is on sys.path so `import progress_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear the in-memory repos behind the service singleton between tests."""
    for repo, attr in (
        (training_service.templates, "_by_id"),
        (training_service.sessions, "_by_id"),
        (training_service.sessions, "_locks"),
        (training_service.progress, "_store"),
    ):
        if hasattr(repo, attr):
            getattr(repo, attr).clear()
    training_service._stores.clear()


@pytest.fixture(autouse=True)
def reset_event_sink() -> None:
    if hasattr(training_service.sink, "_events"):
        training_service.sink._events.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_rosters() -> None:
    enrollment_provider._rosters.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Domain helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Deterministic clock; advance() moves time forward in seconds."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def course(order: int, minutes: int = 60, **kwargs) -> ComponentDefinition:
    return ComponentDefinition.new(
        type=ComponentType.COURSE,
        sequence_order=order,
        duration_minutes=minutes,
        **kwargs,
    )


def assessment(order: int, minutes: int = 30, **kwargs) -> ComponentDefinition:
    return ComponentDefinition.new(
        type=ComponentType.ASSESSMENT,
        sequence_order=order,
        duration_minutes=minutes,
        has_assessment=True,
        **kwargs,
    )


def break_(order: int, minutes: int = 15) -> ComponentDefinition:
    return ComponentDefinition.new(
        type=ComponentType.BREAK,
        sequence_order=order,
        duration_minutes=minutes,
        is_mandatory=False,
        name="Break",
    )


def students(*names: str) -> list[Enrollment]:
    return [
        Enrollment(enrollment_id=uuid4(), name=n, email=f"{n.lower()}@example.com")
        for n in names
    ]


def make_template(components: Sequence[ComponentDefinition]) -> Template:
    return training_service.create_template(
        components, name="Onboarding Day", code="onb-1"
    )


def make_session(
    template: Template, roster: Sequence[Enrollment], session_id: UUID | None = None
) -> SessionInstance:
    session_id = session_id or uuid4()
    enrollment_provider.register(session_id, list(roster))
    return training_service.instantiate_session(session_id, template.id)
