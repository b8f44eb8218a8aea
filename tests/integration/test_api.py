"""HTTP surface tests: auth, error bodies, optimistic concurrency headers."""

from datetime import timedelta
from uuid import uuid4

import pytest

from src.marketplace.core.db import dispose_engine
from src.marketplace.models import (
    ActorRole,
    ApplicationStatus,
    MilestoneStatus,
)
from src.marketplace.models.base import utc_now
from src.marketplace.services.access import Actor
from tests.factories import STATEMENT
from tests.factories.base import generate_uuid7
from tests.helpers import (
    auth_headers,
    create_application,
    create_assigned_project,
    create_milestone,
    create_project,
    partner_of,
    student_of,
    supervisor_of,
)

pytestmark = pytest.mark.integration


def milestone_body(project_id) -> dict:
    return {
        "projectId": str(project_id),
        "title": "Checkout flow",
        "scope": "Cart, payment form and receipt page",
        "acceptanceCriteria": "End-to-end purchase works in staging",
        "dueDate": (utc_now() + timedelta(days=20)).isoformat(),
        "amount": "900.00",
    }


class TestAuthentication:
    async def test_missing_token(self, client):
        response = await client.get(f"/api/v1/milestones/{generate_uuid7()}")

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "UNAUTHORIZED"
        assert body["request_id"]
        assert response.headers["X-Request-ID"] == body["request_id"]
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_garbage_token(self, client):
        response = await client.get(
            f"/api/v1/milestones/{generate_uuid7()}",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    async def test_client_request_id_echoed(self, client):
        request_id = str(uuid4())
        response = await client.get(
            f"/api/v1/milestones/{generate_uuid7()}", headers={"X-Request-ID": request_id}
        )

        assert response.json()["request_id"] == request_id


class TestProjects:
    async def test_partner_creates_project(self, client):
        partner = Actor(id=generate_uuid7(), role=ActorRole.PARTNER)

        response = await client.post(
            "/api/v1/projects",
            json={"title": "Sales dashboard", "universityId": str(generate_uuid7())},
            headers=auth_headers(partner),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["partnerId"] == str(partner.id)
        assert body["currency"] == "USD"
        assert body["version"] == 1

    async def test_student_cannot_create_project(self, client):
        student = Actor(id=generate_uuid7(), role=ActorRole.STUDENT)

        response = await client.post(
            "/api/v1/projects", json={"title": "Mine"}, headers=auth_headers(student)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    async def test_unknown_project(self, client):
        partner = Actor(id=generate_uuid7(), role=ActorRole.PARTNER)

        response = await client.get(
            f"/api/v1/projects/{generate_uuid7()}", headers=auth_headers(partner)
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestApplicationEndpoints:
    async def test_submit_and_accept(self, client, db_session):
        project = await create_project(db_session)
        student = Actor(id=generate_uuid7(), role=ActorRole.STUDENT)

        response = await client.post(
            f"/api/v1/projects/{project.id}/applications",
            json={
                "studentIds": [str(student.id)],
                "statement": STATEMENT,
                "signals": {"skillMatch": 70, "ratingScore": 80, "onTimeRate": 1.0},
            },
            headers=auth_headers(student),
        )
        assert response.status_code == 201
        submitted = response.json()
        assert submitted["status"] == ApplicationStatus.SUBMITTED.value
        assert submitted["version"] == 1
        assert "withdraw" in submitted["allowedActions"]
        assert submitted["score"]["autoScore"] > 0

        response = await client.post(
            f"/api/v1/applications/{submitted['id']}/accept",
            json={"expectedVersion": 1},
            headers=auth_headers(partner_of(project)),
        )
        assert response.status_code == 200
        accepted = response.json()
        assert accepted["status"] == ApplicationStatus.ASSIGNED.value
        assert accepted["version"] == 2

    async def test_stale_if_match(self, client, db_session):
        project = await create_project(db_session)
        application = await create_application(db_session, project)

        response = await client.post(
            f"/api/v1/applications/{application.id}/shortlist",
            headers={**auth_headers(partner_of(project)), "If-Match": 'W/"5"'},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    async def test_malformed_if_match(self, client, db_session):
        project = await create_project(db_session)
        application = await create_application(db_session, project)

        response = await client.post(
            f"/api/v1/applications/{application.id}/shortlist",
            headers={**auth_headers(partner_of(project)), "If-Match": "latest"},
        )

        assert response.status_code == 400

    async def test_second_assignment_is_invariant_violation(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        other = await create_application(db_session, project, ApplicationStatus.SHORTLISTED)

        response = await client.post(
            f"/api/v1/applications/{other.id}/accept",
            headers=auth_headers(partner_of(project)),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVARIANT_VIOLATION"

    async def test_reassign_returns_both_applications(self, client, db_session):
        project, current = await create_assigned_project(db_session)
        candidate = await create_application(db_session, project, ApplicationStatus.WAITLIST)

        response = await client.post(
            f"/api/v1/projects/{project.id}/applications/{current.id}/reassign",
            json={"newApplicationId": str(candidate.id)},
            headers=auth_headers(partner_of(project)),
        )

        assert response.status_code == 200
        displaced, assigned = response.json()
        assert (displaced["id"], displaced["status"]) == (str(current.id), "ACCEPTED")
        assert (assigned["id"], assigned["status"]) == (str(candidate.id), "ASSIGNED")

    async def test_reassign_without_assignee_returns_new_only(self, client, db_session):
        project = await create_project(db_session)
        departed = await create_application(db_session, project, ApplicationStatus.DECLINED)
        candidate = await create_application(db_session, project, ApplicationStatus.WAITLIST)

        response = await client.post(
            f"/api/v1/projects/{project.id}/applications/{departed.id}/reassign",
            json={"newApplicationId": str(candidate.id)},
            headers=auth_headers(partner_of(project)),
        )

        assert response.status_code == 200
        assert [(a["id"], a["status"]) for a in response.json()] == [
            (str(candidate.id), "ASSIGNED")
        ]

    async def test_ranked_candidates(self, client, db_session):
        project = await create_project(db_session)
        await create_application(db_session, project, final_score=30.0)
        best = await create_application(db_session, project, final_score=80.0)

        response = await client.get(
            f"/api/v1/projects/{project.id}/applications/ranked",
            headers=auth_headers(partner_of(project)),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["defaultCandidateId"] == str(best.id)
        assert [item["score"]["finalScore"] for item in body["items"]] == [80.0, 30.0]

    async def test_offer_requires_future_expiry(self, client, db_session):
        project = await create_project(db_session)
        application = await create_application(db_session, project)

        response = await client.post(
            f"/api/v1/applications/{application.id}/offer",
            json={"offerExpiresAt": (utc_now() - timedelta(days=1)).isoformat()},
            headers=auth_headers(supervisor_of(project)),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestMilestoneEndpoints:
    async def test_propose_and_accept(self, client, db_session):
        project, assigned = await create_assigned_project(db_session)

        response = await client.post(
            "/api/v1/milestones",
            json=milestone_body(project.id),
            headers=auth_headers(partner_of(project)),
        )
        assert response.status_code == 201
        created = response.json()
        assert created["status"] == MilestoneStatus.PROPOSED.value
        assert created["escrowStatus"] == "PENDING"
        assert set(created["allowedActions"]) == {"edit", "delete", "save_draft"}

        response = await client.post(
            f"/api/v1/milestones/{created['id']}/accept-proposal",
            json={"expectedVersion": 1},
            headers=auth_headers(student_of(assigned)),
        )
        assert response.status_code == 200
        accepted = response.json()
        assert accepted["status"] == MilestoneStatus.ACCEPTED.value
        assert accepted["version"] == 2
        assert accepted["allowedActions"] == []

        response = await client.get(
            f"/api/v1/milestones/{created['id']}/transitions",
            headers=auth_headers(partner_of(project)),
        )
        actions = [item["action"] for item in response.json()["items"]]
        assert actions == ["accept_proposal", "create"]

    async def test_invalid_transition(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, MilestoneStatus.ACCEPTED)

        response = await client.post(
            f"/api/v1/milestones/{milestone.id}/fund-escrow",
            headers=auth_headers(partner_of(project)),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_supervisor_cannot_release(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, MilestoneStatus.PARTNER_REVIEW)

        response = await client.post(
            f"/api/v1/milestones/{milestone.id}/approve-release",
            headers=auth_headers(supervisor_of(project)),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    async def test_edit_after_work_started(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, MilestoneStatus.IN_PROGRESS)

        response = await client.put(
            f"/api/v1/milestones/{milestone.id}",
            json={"title": "Changed"},
            headers=auth_headers(partner_of(project)),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "NOT_EDITABLE"

    async def test_edit_with_stale_if_match(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, MilestoneStatus.DRAFT)

        response = await client.put(
            f"/api/v1/milestones/{milestone.id}",
            json={"title": "Changed title"},
            headers={**auth_headers(partner_of(project)), "If-Match": '"2"'},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    async def test_delete(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, MilestoneStatus.PROPOSED)
        headers = auth_headers(partner_of(project))

        response = await client.delete(f"/api/v1/milestones/{milestone.id}", headers=headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/milestones/{milestone.id}", headers=headers)
        assert response.status_code == 404

    async def test_outsider_cannot_read_milestone(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, MilestoneStatus.FUNDED)
        outsider = Actor(id=uuid4(), role=ActorRole.STUDENT)

        response = await client.get(
            f"/api/v1/milestones/{milestone.id}", headers=auth_headers(outsider)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    async def test_dispute(self, client, db_session):
        project, assigned = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, MilestoneStatus.SUBMITTED)
        headers = auth_headers(student_of(assigned))

        response = await client.post(
            f"/api/v1/milestones/{milestone.id}/dispute",
            json={"reason": "Review has stalled for two weeks"},
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json()["milestoneStatus"] == "SUBMITTED"

        response = await client.get(f"/api/v1/milestones/{milestone.id}/disputes", headers=headers)
        assert len(response.json()) == 1

    async def test_request_validation_error_shape(self, client, db_session):
        project, _ = await create_assigned_project(db_session)

        response = await client.post(
            "/api/v1/milestones",
            json={"projectId": str(project.id)},
            headers=auth_headers(partner_of(project)),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert isinstance(body["detail"], list)
        assert body["request_id"]

    async def test_milestone_responses_not_cached(self, client, db_session):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project)

        response = await client.get(
            f"/api/v1/milestones/{milestone.id}", headers=auth_headers(partner_of(project))
        )

        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


async def test_metrics_exposed(client):
    response = await client.get("/metrics")

    assert response.status_code == 200


async def test_hardening_headers_outside_engine_routes(client):
    response = await client.get("/metrics")

    assert response.headers["X-Frame-Options"] == "DENY"
    assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]


async def test_health_checks_database(client):
    try:
        response = await client.get("/health")
    finally:
        await dispose_engine()

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "healthy"}
