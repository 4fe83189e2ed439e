import pytest

from rail_access_groups.exceptions import ConfigurationError
from rail_access_groups.models import GroupScopedQuerySet
from tests.models import Document, Note, Project, Tag, Team, TeamMembership

pytestmark = pytest.mark.unit


@pytest.mark.django_db
def test_group_scoped_manager_filters_by_group(teams):
    Document.objects.create(title="One", team=teams[0])
    Document.objects.create(title="Two", team=teams[1])
    Document.objects.create(title="Loose")

    first_team = Document.objects.for_group(teams[0].pk)

    assert list(first_team.values_list("title", flat=True)) == ["One"]
    assert Document.objects.for_groups([teams[0].pk, teams[1].pk]).count() == 2
    assert Document.objects.for_group(None).count() == 0
    assert Document.objects.for_groups([]).count() == 0
    assert Document.objects.unscoped().count() == 3


@pytest.mark.django_db
def test_group_scoped_manager_follows_declared_relation(teams):
    Project.objects.create(name="Alpha", owner=teams[0])
    Project.objects.create(name="Beta", owner=teams[1])

    names = list(Project.objects.for_group(teams[1].pk).values_list("name", flat=True))

    assert names == ["Beta"]


@pytest.mark.django_db
def test_group_access_str(user):
    team = Team.objects.create(name="Ops")
    membership = TeamMembership.objects.create(user=user, team=team, role="admin")

    assert str(membership) == f"{user.pk}:admin"
    assert membership.created_at is not None
    assert membership.last_used_at is None


@pytest.mark.django_db
def test_group_scoped_manager_uses_scoping_setting(teams):
    Note.objects.create(body="crew one", crew=teams[0], reviewers=teams[1])
    Note.objects.create(body="crew two", crew=teams[1], reviewers=teams[0])

    bodies = list(Note.objects.for_group(teams[1].pk).values_list("body", flat=True))

    assert bodies == ["crew one"]
    assert Note.objects.for_groups([teams[0].pk]).get().body == "crew two"


def test_group_scoped_queryset_rejects_unscoped_models():
    with pytest.raises(ConfigurationError):
        GroupScopedQuerySet(model=Tag).for_group(1)
