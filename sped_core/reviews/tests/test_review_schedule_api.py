from datetime import timedelta

import pytest
from django.utils.timezone import now

from sped_core.compliance.models import ComplianceTask, ComplianceTaskStatus
from sped_core.reviews.models import ReviewSchedule

pytestmark = pytest.mark.django_db


def plan_url(plan):
    return f"/api/v1/plans/{plan.id}/review-schedules/"


def schedule_payload(days_out=5, **overrides):
    data = {
        "schedule_type": "IEP_ANNUAL_REVIEW",
        "due_date": (now() + timedelta(days=days_out)).isoformat(),
        "lead_days": 30,
    }
    data.update(overrides)
    return data


def test_create_and_list_plan_schedules(api_client, plan):
    resp = api_client.post(plan_url(plan), schedule_payload(), format="json")
    assert resp.status_code == 201, resp.data
    assert resp.data["status"] == "OPEN"
    assert resp.data["schedule_type_display"] == "IEP Annual Review"
    assert resp.data["student"]["last_name"] == "Lopez"

    api_client.post(plan_url(plan), schedule_payload(days_out=200, schedule_type="IEP_REEVALUATION"), format="json")

    listing = api_client.get(plan_url(plan))
    assert listing.status_code == 200
    assert listing.data["count"] == 2

    filtered = api_client.get(plan_url(plan), {"schedule_type": "IEP_REEVALUATION"})
    assert [s["schedule_type"] for s in filtered.data["results"]] == ["IEP_REEVALUATION"]


def test_create_validates_lead_days(api_client, plan):
    resp = api_client.post(plan_url(plan), schedule_payload(lead_days=0), format="json")
    assert resp.status_code == 400
    assert "lead_days" in resp.data["error"]["details"]


def test_create_for_unknown_plan_is_404(api_client, db):
    resp = api_client.post(
        "/api/v1/plans/00000000-0000-0000-0000-000000000000/review-schedules/",
        schedule_payload(),
        format="json",
    )
    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "not_found"


def test_complete_endpoint_cascades(api_client, plan):
    schedule_id = api_client.post(plan_url(plan), schedule_payload(), format="json").data["id"]
    assert ComplianceTask.objects.filter(review_schedule_id=schedule_id, status=ComplianceTaskStatus.OPEN).exists()

    resp = api_client.post(f"/api/v1/review-schedules/{schedule_id}/complete/", {"notes": "Held"}, format="json")

    assert resp.status_code == 200
    assert resp.data["status"] == "COMPLETE"
    assert resp.data["notes"] == "Completion notes: Held"
    assert not ComplianceTask.objects.filter(review_schedule_id=schedule_id, status=ComplianceTaskStatus.OPEN).exists()

    again = api_client.post(f"/api/v1/review-schedules/{schedule_id}/complete/", {}, format="json")
    assert again.status_code == 409
    assert again.data["error"]["code"] == "conflict"


def test_patch_schedule(api_client, plan):
    schedule_id = api_client.post(plan_url(plan), schedule_payload(days_out=90), format="json").data["id"]

    resp = api_client.patch(
        f"/api/v1/review-schedules/{schedule_id}/",
        {"lead_days": 10, "assigned_to_user_id": 7},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.data["lead_days"] == 10
    assert resp.data["assigned_to_user_id"] == 7


def test_delete_requires_admin(client_for, plan):
    manager = client_for("CASE_MANAGER")
    admin = client_for("ADMIN")
    schedule_id = manager.post(plan_url(plan), schedule_payload(), format="json").data["id"]

    assert manager.delete(f"/api/v1/review-schedules/{schedule_id}/").status_code == 403
    assert admin.delete(f"/api/v1/review-schedules/{schedule_id}/").status_code == 204
    assert not ReviewSchedule.objects.filter(id=schedule_id).exists()
    assert not ComplianceTask.objects.filter(review_schedule_id=schedule_id).exists()


def test_teacher_can_read_but_not_write(client_for, plan):
    manager = client_for("CASE_MANAGER")
    teacher = client_for("TEACHER")
    schedule_id = manager.post(plan_url(plan), schedule_payload(), format="json").data["id"]

    assert teacher.get(plan_url(plan)).status_code == 200
    assert teacher.get(f"/api/v1/review-schedules/{schedule_id}/").status_code == 200
    assert teacher.post(plan_url(plan), schedule_payload(), format="json").status_code == 403
    assert teacher.post(f"/api/v1/review-schedules/{schedule_id}/complete/", {}, format="json").status_code == 403


def test_readonly_cannot_read(client_for, plan):
    readonly = client_for("READONLY")
    assert readonly.get(plan_url(plan)).status_code == 403


def test_dashboard(api_client, plan):
    api_client.post(plan_url(plan), schedule_payload(days_out=-3), format="json")
    api_client.post(plan_url(plan), schedule_payload(days_out=5), format="json")
    api_client.post(plan_url(plan), schedule_payload(days_out=45), format="json")

    resp = api_client.get("/api/v1/review-schedules/dashboard/")
    assert resp.status_code == 200
    assert resp.data["overdue_count"] == 1
    assert resp.data["upcoming_count"] == 1
    assert resp.data["total"] == 2

    wider = api_client.get("/api/v1/review-schedules/dashboard/", {"days": 60})
    assert wider.data["upcoming_count"] == 2


def test_schedule_types_catalogue(api_client):
    resp = api_client.get("/api/v1/review-schedules/schedule-types/")
    assert resp.status_code == 200
    assert {"value": "BIP_REVIEW", "label": "BIP Review"} in resp.data


def test_unauthorized_write_with_bad_body_is_403_not_400(client_for, plan):
    manager = client_for("CASE_MANAGER")
    schedule_id = manager.post(plan_url(plan), schedule_payload(), format="json").data["id"]

    for role in ("TEACHER", "READONLY"):
        c = client_for(role)
        bad_create = c.post(plan_url(plan), {"schedule_type": "NOPE", "lead_days": 0}, format="json")
        bad_patch = c.patch(f"/api/v1/review-schedules/{schedule_id}/", {}, format="json")

        assert bad_create.status_code == 403
        assert bad_create.data["error"]["code"] == "permission_denied"
        assert bad_patch.status_code == 403


def test_dashboard_reports_due_within_30_days(api_client, plan):
    api_client.post(plan_url(plan), schedule_payload(days_out=-3), format="json")
    api_client.post(plan_url(plan), schedule_payload(days_out=5), format="json")
    api_client.post(plan_url(plan), schedule_payload(days_out=45), format="json")

    wider = api_client.get("/api/v1/review-schedules/dashboard/", {"days": 60})
    assert wider.data["total"] == 3
    assert wider.data["total_due_within_30_days"] == 2

    narrow = api_client.get("/api/v1/review-schedules/dashboard/", {"days": 7})
    assert narrow.data["total_due_within_30_days"] == 2


def test_list_accepts_type_as_alias_for_schedule_type(api_client, plan):
    api_client.post(plan_url(plan), schedule_payload(), format="json")
    bip = api_client.post(plan_url(plan), schedule_payload(schedule_type="BIP_REVIEW"), format="json").data["id"]

    by_alias = api_client.get(plan_url(plan), {"type": "BIP_REVIEW"})
    assert [s["id"] for s in by_alias.data["results"]] == [bip]

    assert api_client.get(plan_url(plan), {"type": "NOPE"}).status_code == 400
