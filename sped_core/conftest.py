# sped_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from sped_core.common.permissions import ROLE_PRECEDENCE, Actor, actor_from_user
from sped_core.organizations.models import District, School
from sped_core.plans.models import PlanInstance, PlanStatus, Student
from sped_core.rules.catalog import seed_catalog
from sped_core.rules.models import EvidenceType, RuleDefinition


def ensure_groups():
    for name in ROLE_PRECEDENCE:
        Group.objects.get_or_create(name=name)


def make_user(username: str, role: str):
    ensure_groups()
    User = get_user_model()
    u = User.objects.create_user(username=username, password="pass123")
    u.groups.add(Group.objects.get(name=role))
    u.save()
    return u


@pytest.fixture
def admin_user(db):
    return make_user("admin_1", "ADMIN")


@pytest.fixture
def case_manager_user(db):
    return make_user("case_manager_1", "CASE_MANAGER")


@pytest.fixture
def teacher_user(db):
    return make_user("teacher_1", "TEACHER")


@pytest.fixture
def admin_actor(admin_user) -> Actor:
    return actor_from_user(admin_user)


@pytest.fixture
def case_manager(case_manager_user) -> Actor:
    return actor_from_user(case_manager_user)


@pytest.fixture
def teacher(teacher_user) -> Actor:
    return actor_from_user(teacher_user)


@pytest.fixture
def district(db):
    return District.objects.create(code="HCPSS", name="Howard County Public Schools", state_code="md")


@pytest.fixture
def school(district):
    return School.objects.create(code="HCPSS-001", name="Centennial High", district=district)


@pytest.fixture
def student(school):
    return Student.objects.create(first_name="Maya", last_name="Lopez", school=school)


@pytest.fixture
def plan(student):
    return PlanInstance.objects.create(student=student, plan_type="IEP", status=PlanStatus.ACTIVE)


@pytest.fixture
def catalog(db):
    seed_catalog()
    return {
        "definitions": {d.key: d for d in RuleDefinition.objects.all()},
        "evidence_types": {e.key: e for e in EvidenceType.objects.all()},
    }


@pytest.fixture
def api_client(admin_user):
    c = APIClient()
    c.force_authenticate(user=admin_user)
    return c


@pytest.fixture
def client_for(db):
    """
    Build an APIClient authenticated as a fresh user holding `role`.
    """
    counter = {"n": 0}

    def _client(role: str) -> APIClient:
        counter["n"] += 1
        c = APIClient()
        c.force_authenticate(user=make_user(f"{role.lower()}_client_{counter['n']}", role))
        return c

    return _client
