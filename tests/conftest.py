import pytest
from django.contrib.auth.models import User

from rail_access_groups.context import AccessContext, Operation
from rail_access_groups.registry import ResourceRegistry
from rail_access_groups.service import GroupAccessControl
from rail_access_groups.settings import build_access_groups_settings
from tests.models import Team, TeamMembership


@pytest.fixture
def make_control():
    """Build a GroupAccessControl with settings overrides."""

    def _make(**overrides):
        settings = build_access_groups_settings(overrides)
        return GroupAccessControl(settings, ResourceRegistry(settings))

    return _make


@pytest.fixture
def basic_control(make_control):
    return make_control(apply_to_static=False)


@pytest.fixture
def extended_control(make_control):
    return make_control(apply_to_static=True)


@pytest.fixture
def user(db):
    return User.objects.create_user(username="alice", password="pass12345")


@pytest.fixture
def other_user(db):
    return User.objects.create_user(username="bob", password="pass12345")


@pytest.fixture
def teams(db):
    return (
        Team.objects.create(name="Group One"),
        Team.objects.create(name="Group Two"),
    )


@pytest.fixture
def admin_of_first_team(user, teams):
    return TeamMembership.objects.create(user=user, team=teams[0], role="admin")


@pytest.fixture
def make_context():
    def _make(user=None, operation=Operation.READ, **kwargs):
        return AccessContext(
            user_id=user.pk if user is not None else None,
            operation=operation,
            **kwargs,
        )

    return _make
