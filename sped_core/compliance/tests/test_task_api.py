from datetime import timedelta

import pytest
from django.utils.timezone import now
from rest_framework.test import APIClient, APIRequestFactory, force_authenticate

from sped_core.compliance.api.views import ComplianceTaskViewSet
from sped_core.compliance.models import ComplianceTask, ComplianceTaskStatus
from sped_core.compliance.services import ComplianceTaskService

pytestmark = pytest.mark.django_db

BASE = "/api/v1/compliance-tasks/"


def make_task(actor, plan, *, title, due_in_days=None, priority=1, assigned_to_user_id=None):
    return ComplianceTaskService.create_task(
        actor=actor,
        task_type="DOCUMENT_REQUIRED",
        title=title,
        plan_id=plan.id,
        priority=priority,
        due_date=now() + timedelta(days=due_in_days) if due_in_days is not None else None,
        assigned_to_user_id=assigned_to_user_id,
    )


def call_action(*, user, action: str, pk, data=None):
    """
    Call a ViewSet POST action directly via APIRequestFactory + force_authenticate.
    """
    factory = APIRequestFactory()
    view = ComplianceTaskViewSet.as_view({"post": action})
    request = factory.post(f"{BASE}{pk}/{action}/", data=data or {}, format="json")
    force_authenticate(request, user=user)
    return view(request, pk=str(pk))


def test_list_is_ordered_by_priority_then_due_date(api_client, case_manager, plan):
    low = make_task(case_manager, plan, title="low", due_in_days=1, priority=1)
    high_late = make_task(case_manager, plan, title="high late", due_in_days=9, priority=3)
    high_early = make_task(case_manager, plan, title="high early", due_in_days=2, priority=3)

    resp = api_client.get(BASE)
    assert resp.status_code == 200
    assert [t["id"] for t in resp.data["results"]] == [str(high_early.id), str(high_late.id), str(low.id)]


def test_overdue_filter(api_client, case_manager, plan):
    late = make_task(case_manager, plan, title="late", due_in_days=-1)
    make_task(case_manager, plan, title="future", due_in_days=1)
    make_task(case_manager, plan, title="undated")
    finished = make_task(case_manager, plan, title="finished", due_in_days=-2)
    ComplianceTaskService.complete_task(actor=case_manager, task_id=finished.id)

    resp = api_client.get(BASE, {"overdue": "true"})
    assert [t["id"] for t in resp.data["results"]] == [str(late.id)]
    assert resp.data["results"][0]["is_overdue"] is True


def test_status_filter_rejects_unknown_value(api_client):
    resp = api_client.get(BASE, {"status": "DONE"})
    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "validation_error"


def test_mine_defaults_to_active_tasks(case_manager, case_manager_user, plan):
    mine_open = make_task(case_manager, plan, title="mine", assigned_to_user_id=case_manager_user.id)
    mine_done = make_task(case_manager, plan, title="mine done", assigned_to_user_id=case_manager_user.id)
    ComplianceTaskService.complete_task(actor=case_manager, task_id=mine_done.id)
    make_task(case_manager, plan, title="someone else", assigned_to_user_id=case_manager_user.id + 1000)

    c = APIClient()
    c.force_authenticate(user=case_manager_user)

    resp = c.get(f"{BASE}mine/")
    assert [t["id"] for t in resp.data["results"]] == [str(mine_open.id)]

    resp = c.get(f"{BASE}mine/", {"status": "COMPLETE"})
    assert [t["id"] for t in resp.data["results"]] == [str(mine_done.id)]


def test_dashboard_counts(api_client, case_manager, plan):
    make_task(case_manager, plan, title="overdue", due_in_days=-1, priority=5)
    make_task(case_manager, plan, title="soon", due_in_days=10)
    started = make_task(case_manager, plan, title="later", due_in_days=60)
    ComplianceTaskService.start_task(actor=case_manager, task_id=started.id)

    resp = api_client.get(f"{BASE}dashboard/")
    assert resp.status_code == 200
    assert resp.data["open_count"] == 2
    assert resp.data["in_progress_count"] == 1
    assert resp.data["overdue_count"] == 1
    assert resp.data["due_soon_count"] == 1
    assert resp.data["urgent"][0]["title"] == "overdue"


def test_create_and_patch(api_client, plan):
    resp = api_client.post(
        BASE,
        {"task_type": "MEETING_REQUIRED", "title": "Schedule IEP meeting", "plan_id": str(plan.id), "priority": 3},
        format="json",
    )
    assert resp.status_code == 201, resp.data
    task_id = resp.data["id"]
    assert resp.data["student"]["first_name"] == "Maya"

    patched = api_client.patch(f"{BASE}{task_id}/", {"title": "Schedule annual IEP meeting"}, format="json")
    assert patched.status_code == 200
    assert patched.data["title"] == "Schedule annual IEP meeting"

    status_change = api_client.patch(f"{BASE}{task_id}/", {"status": "COMPLETE"}, format="json")
    assert status_change.status_code == 400
    assert ComplianceTask.objects.get(id=task_id).status == ComplianceTaskStatus.OPEN


def test_workflow_actions(case_manager, case_manager_user, plan):
    task = make_task(case_manager, plan, title="t")

    resp = call_action(user=case_manager_user, action="start", pk=task.id)
    assert resp.status_code == 200
    assert resp.data["status"] == "IN_PROGRESS"

    resp = call_action(user=case_manager_user, action="dismiss", pk=task.id, data={})
    assert resp.status_code == 400

    resp = call_action(user=case_manager_user, action="dismiss", pk=task.id, data={"reason": "Duplicate"})
    assert resp.status_code == 200
    assert resp.data["status"] == "DISMISSED"

    resp = call_action(user=case_manager_user, action="complete", pk=task.id)
    assert resp.status_code == 409


def test_teacher_can_view_but_not_act(case_manager, teacher_user, plan, client_for):
    task = make_task(case_manager, plan, title="t")
    teacher = client_for("TEACHER")

    assert teacher.get(BASE).status_code == 200
    assert teacher.get(f"{BASE}{task.id}/").status_code == 200
    assert call_action(user=teacher_user, action="start", pk=task.id).status_code == 403


def test_task_types_catalogue(api_client):
    resp = api_client.get(f"{BASE}task-types/")
    assert resp.status_code == 200
    assert {"value": "REVIEW_DUE_SOON", "label": "Review Due Soon"} in resp.data


def test_unauthorized_write_with_bad_body_is_403_not_400(case_manager, teacher_user, plan, client_for):
    task = make_task(case_manager, plan, title="t")
    teacher = client_for("TEACHER")

    assert teacher.post(BASE, {"task_type": "NOPE"}, format="json").status_code == 403
    assert teacher.patch(f"{BASE}{task.id}/", {"status": "COMPLETE"}, format="json").status_code == 403
    assert call_action(user=teacher_user, action="dismiss", pk=task.id, data={}).status_code == 403
