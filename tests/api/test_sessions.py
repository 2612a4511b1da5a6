"""End-to-end session scenarios over HTTP."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from progress_service.services.session_service import (
    enrollment_provider,
    training_service,
)


def _template(client: TestClient, components: list[dict]) -> str:
    resp = client.post(
        "/v1/templates", json={"name": "Day", "code": "d1", "components": components}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _session(client: TestClient, template_id: str, names: list[str]) -> dict:
    resp = client.post(
        "/v1/sessions",
        json={
            "template_id": template_id,
            "title": "Cohort 7",
            "enrollments": [
                {"name": n, "email": f"{n.upper()}@Example.com"} for n in names
            ],
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _patch(client: TestClient, session: dict, enrollment: str, component: str, **body):
    return client.patch(
        f"/v1/sessions/{session['id']}/progress/{enrollment}/{component}", json=body
    )


LESSONS = [
    {"type": "COURSE", "sequence_order": 1, "duration_minutes": 60},
    {
        "type": "BREAK",
        "sequence_order": 2,
        "duration_minutes": 15,
        "is_mandatory": False,
    },
    {"type": "COURSE", "sequence_order": 3, "duration_minutes": 60},
]


def test_create_session(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada", "bob"])
    assert session["title"] == "Cohort 7"
    assert len(session["component_ids"]) == 3
    assert [e["email"] for e in session["enrollments"]] == [
        "ada@example.com",
        "bob@example.com",
    ]
    assert client.get(f"/v1/sessions/{session['id']}").json() == session


def test_create_session_unknown_template_is_404(client: TestClient) -> None:
    resp = client.post(
        "/v1/sessions",
        json={
            "template_id": str(uuid4()),
            "enrollments": [{"name": "a", "email": "a@x"}],
        },
    )
    assert resp.status_code == 404


def test_create_session_empty_roster_is_422(client: TestClient) -> None:
    resp = client.post(
        "/v1/sessions",
        json={"template_id": _template(client, LESSONS), "enrollments": []},
    )
    assert resp.status_code == 422


def test_roster_is_not_kept_after_instantiation(client: TestClient) -> None:
    _session(client, _template(client, LESSONS), ["ada"])
    client.post(
        "/v1/sessions",
        json={
            "template_id": str(uuid4()),
            "enrollments": [{"name": "a", "email": "a@x"}],
        },
    )
    assert enrollment_provider._rosters == {}


def test_student_completes_day(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada"])
    ada = session["enrollments"][0]["enrollment_id"]
    first, _, third = session["component_ids"]

    for component in (first, third):
        started = _patch(client, session, ada, component, status="IN_PROGRESS")
        assert started.status_code == 200
        resp = _patch(
            client,
            session,
            ada,
            component,
            status="COMPLETED",
            attendance_status="PRESENT",
        )
        assert resp.status_code == 200
        assert resp.json()["end_time"] is not None

    student = client.get(f"/v1/sessions/{session['id']}/students/{ada}").json()
    assert student["overall_status"] == "COMPLETED"
    assert student["completion_rate"] == 1.0
    assert student["completion_percentage"] == 100.0
    assert student["overall_passed"] is True
    assert student["attendance_percentage"] == 100.0
    assert len(student["component_progress"]) == 3


def test_failed_assessment_fails_student(client: TestClient) -> None:
    components = LESSONS + [
        {
            "type": "ASSESSMENT",
            "sequence_order": 4,
            "duration_minutes": 30,
            "has_assessment": True,
        }
    ]
    session = _session(client, _template(client, components), ["ada"])
    ada = session["enrollments"][0]["enrollment_id"]
    quiz = session["component_ids"][3]

    resp = _patch(client, session, ada, quiz, status="IN_PROGRESS", score=55)
    assert resp.status_code == 200
    assert resp.json()["status"] == "FAILED"
    assert resp.json()["attempts"] == 1

    student = client.get(f"/v1/sessions/{session['id']}/students/{ada}").json()
    assert student["overall_status"] == "FAILED"
    assert student["overall_score"] == 55.0

    again = _patch(client, session, ada, quiz, score=99)
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "attempts_exceeded"


def test_invalid_transition_is_409(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada"])
    ada = session["enrollments"][0]["enrollment_id"]
    first = session["component_ids"][0]

    resp = _patch(client, session, ada, first, status="COMPLETED")
    assert resp.status_code == 409
    assert resp.json()["detail"]["error"] == "invalid_transition"

    record = client.get(f"/v1/sessions/{session['id']}/progress/{ada}/{first}").json()
    assert record["status"] == "NOT_STARTED"


def test_patch_score_out_of_range_is_422(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada"])
    ada = session["enrollments"][0]["enrollment_id"]
    resp = _patch(client, session, ada, session["component_ids"][0], score=140)
    assert resp.status_code == 422


def test_patch_unknown_enrollment_is_404(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada"])
    first = session["component_ids"][0]
    resp = _patch(client, session, str(uuid4()), first, status="IN_PROGRESS")
    assert resp.status_code == 404


def test_bulk_update_reports_each_entry(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada", "bob"])
    ada, bob = (e["enrollment_id"] for e in session["enrollments"])
    first = session["component_ids"][0]

    resp = client.post(
        f"/v1/sessions/{session['id']}/progress/bulk",
        json={
            "updates": [
                {
                    "enrollment_id": ada,
                    "component_id": first,
                    "patch": {"status": "IN_PROGRESS"},
                },
                {
                    "enrollment_id": bob,
                    "component_id": first,
                    "patch": {"status": "COMPLETED"},
                },
            ]
        },
    )
    assert resp.status_code == 200
    ok, failed = resp.json()
    assert ok["ok"] is True
    assert ok["record"]["status"] == "IN_PROGRESS"
    assert failed["ok"] is False
    assert failed["error"] == "invalid_transition"
    assert failed["status_code"] == 409


def test_list_students_with_status_filter(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada", "bob"])
    ada = session["enrollments"][0]["enrollment_id"]
    _patch(client, session, ada, session["component_ids"][0], status="IN_PROGRESS")

    url = f"/v1/sessions/{session['id']}/students"
    assert len(client.get(url).json()) == 2
    in_progress = client.get(url, params={"status": "IN_PROGRESS"}).json()
    assert [s["enrollment_id"] for s in in_progress] == [ada]
    assert client.get(url, params={"status": "BOGUS"}).status_code == 422


def test_student_metrics_override(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada"])
    ada = session["enrollments"][0]["enrollment_id"]
    resp = client.put(
        f"/v1/sessions/{session['id']}/students/{ada}/metrics",
        json={"attendance_percentage": 87.5, "participation_score": 90},
    )
    assert resp.status_code == 200
    assert resp.json()["attendance_percentage"] == 87.5
    assert resp.json()["participation_score"] == 90.0


def test_summary_and_component_breakdown(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada", "bob"])
    ada = session["enrollments"][0]["enrollment_id"]
    first = session["component_ids"][0]
    _patch(client, session, ada, first, status="IN_PROGRESS")

    summary = client.get(f"/v1/sessions/{session['id']}/summary").json()
    assert summary["student_count"] == 2
    assert summary["status_counts"]["IN_PROGRESS"] == 1
    assert summary["status_counts"]["NOT_STARTED"] == 1
    assert len(summary["components"]) == 3

    breakdown = client.get(f"/v1/sessions/{session['id']}/components/{first}").json()
    assert breakdown["status_counts"]["IN_PROGRESS"] == 1
    assert breakdown["status_counts"]["NOT_STARTED"] == 1
    assert breakdown == summary["components"][0]


def test_status_change_emits_event(client: TestClient) -> None:
    session = _session(client, _template(client, LESSONS), ["ada"])
    ada = session["enrollments"][0]["enrollment_id"]
    _patch(client, session, ada, session["component_ids"][0], status="SKIPPED")

    events = training_service.sink.events  # type: ignore[attr-defined]
    assert [(e.previous_status, e.new_status) for e in events] == [
        ("NOT_STARTED", "SKIPPED")
    ]


def test_unknown_session_is_404(client: TestClient) -> None:
    assert client.get(f"/v1/sessions/{uuid4()}/summary").status_code == 404
