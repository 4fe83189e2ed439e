import pytest
from asgiref.sync import async_to_sync
from django.contrib.auth.models import User
from django.db.models import Q

from rail_access_groups.context import AccessContext
from tests.models import Document, Project, Tag, Team, TeamMembership

pytestmark = pytest.mark.unit


@pytest.fixture
def builder(basic_control):
    return basic_control.filters


@pytest.mark.parametrize("resource", [User, Team, TeamMembership])
def test_unscoped_listings_keep_existing_filter(builder, resource):
    existing = Q(pk__gt=3)

    result = async_to_sync(builder.build)(1, "4", resource, existing)

    assert result == existing


def test_models_without_group_scoping_are_unchanged(builder):
    result = async_to_sync(builder.build)(1, "4", Tag)

    assert result == Q()


def test_current_group_filter(builder):
    result = async_to_sync(builder.build)(1, "4", Document, Q(title="x"))

    assert result == Q(title="x") & Q(team_id="4")


def test_relation_filter_uses_edge(builder):
    result = async_to_sync(builder.build)(1, "4", Project)

    assert result == Q(owner_id="4")


@pytest.mark.django_db
def test_filter_on_all_member_groups(builder, user, teams):
    TeamMembership.objects.create(user=user, team=teams[1], role="member")
    TeamMembership.objects.create(user=user, team=teams[0], role="admin")

    result = async_to_sync(builder.build)(user.pk, None, Document)

    assert result == Q(team_id__in=sorted([teams[0].pk, teams[1].pk], key=str))


@pytest.mark.django_db
def test_scope_queryset_only_when_group_access_applied(builder, user, teams):
    Document.objects.create(title="One", team=teams[0])
    Document.objects.create(title="Two", team=teams[1])
    context = AccessContext(user_id=user.pk, current_group_id=str(teams[0].pk))
    scope = async_to_sync(builder.scope_queryset)

    untouched = scope(Document.objects.all(), context)
    assert untouched.count() == 2

    context.mark_group_access_applied()
    scoped = scope(Document.objects.all(), context)
    assert list(scoped.values_list("title", flat=True)) == ["One"]


@pytest.mark.django_db
def test_scope_queryset_without_memberships_returns_nothing(builder, user, teams):
    Document.objects.create(title="One", team=teams[0])
    context = AccessContext(user_id=user.pk)

    scoped = async_to_sync(builder.scope_queryset)(
        Document.objects.all(), context, group_access_applied=True
    )

    assert scoped.count() == 0
