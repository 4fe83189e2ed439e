from unittest.mock import AsyncMock, patch

import pytest
from asgiref.sync import async_to_sync
from django.contrib.auth.models import User
from django.db import DatabaseError

from rail_access_groups.exceptions import (
    AccessLookupError,
    AmbiguousRelationWarning,
    ConfigurationError,
    ResourceNotFound,
)
from rail_access_groups.registry import ResourceRegistry, ScopingKind
from rail_access_groups.settings import build_access_groups_settings
from tests.models import (
    AuditEntry,
    Document,
    Handover,
    Milestone,
    Note,
    Project,
    Tag,
    Team,
    TeamMembership,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def registry():
    return ResourceRegistry(build_access_groups_settings())


def test_type_checks(registry):
    assert registry.is_group_type(Team) is True
    assert registry.is_group_type("tests.Team") is True
    assert registry.is_group_access_type(TeamMembership) is True
    assert registry.is_user_type(User) is True
    assert registry.is_group_type(Document) is False
    assert registry.is_group_type(None) is False
    assert registry.is_unscoped_type(Team) is True
    assert registry.is_unscoped_type(Document) is False


def test_direct_group_key_strategy(registry):
    strategy = registry.strategy_for(Document)

    assert strategy.kind is ScopingKind.DIRECT
    assert strategy.field_name == "team"
    assert strategy.attname == "team_id"


def test_declared_relation_strategy(registry):
    strategy = registry.strategy_for(Project)

    assert strategy.kind is ScopingKind.RELATION
    assert strategy.field_name == "owner"
    assert strategy.lookup == "owner_id"


def test_discovered_relation_strategy(registry):
    strategy = registry.strategy_for(Milestone())

    assert strategy.kind is ScopingKind.RELATION
    assert strategy.field_name == "organizer"


def test_models_without_group_scoping(registry):
    assert registry.strategy_for(Tag) is None
    assert registry.strategy_for(AuditEntry) is None
    assert registry.strategy_for(Team) is None
    assert registry.strategy_for(TeamMembership) is None
    assert registry.strategy_for(User) is None


def test_group_content_models(registry):
    content = registry.group_content_models()

    assert {Document, Project, Milestone, Handover} <= set(content)
    assert Tag not in content
    assert AuditEntry not in content


def test_ambiguous_relation_warns_and_uses_first_edge():
    with pytest.warns(AmbiguousRelationWarning, match="tests.Handover"):
        registry = ResourceRegistry(build_access_groups_settings())

    assert registry.strategy_for(Handover).field_name == "from_team"


def test_explicit_relation_removes_ambiguity(recwarn):
    settings = build_access_groups_settings(
        {"scoping": {"tests.Handover": {"group_relation": "to_team"}}}
    )
    registry = ResourceRegistry(settings)

    assert registry.strategy_for(Handover).field_name == "to_team"
    assert not [
        w
        for w in recwarn
        if issubclass(w.category, AmbiguousRelationWarning)
        and "tests.Handover" in str(w.message)
    ]


def test_relation_declaration_must_point_at_group_model():
    settings = build_access_groups_settings(
        {"scoping": {"tests.Project": {"group_relation": "name"}}}
    )

    with pytest.raises(ConfigurationError):
        ResourceRegistry(settings)


def test_declaring_field_and_relation_is_rejected():
    settings = build_access_groups_settings(
        {
            "scoping": {
                "tests.Milestone": {
                    "group_field": "organizer",
                    "group_relation": "organizer",
                }
            }
        }
    )

    with pytest.raises(ConfigurationError):
        ResourceRegistry(settings)


def test_unknown_group_model_is_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        ResourceRegistry(build_access_groups_settings({"group_model": "tests.Missing"}))

    assert exc_info.value.setting == "group_model"


@pytest.mark.django_db
def test_resolve_owning_group_id(registry):
    team = Team.objects.create(name="Ops")
    document = Document.objects.create(title="Runbook", team=team)
    project = Project.objects.create(name="Migration", owner=team)
    tag = Tag.objects.create(name="urgent")

    resolve = async_to_sync(registry.resolve_owning_group_id)

    assert resolve(Document, document.pk) == team.pk
    assert resolve(Project, project.pk) == team.pk
    assert resolve(Team, team.pk) == team.pk
    assert resolve(Tag, tag.pk) is None


@pytest.mark.django_db
def test_resolve_owning_group_id_for_missing_instance(registry):
    with pytest.raises(ResourceNotFound):
        async_to_sync(registry.resolve_owning_group_id)(Document, 999)


def test_instance_fetch_error_becomes_lookup_error(registry):
    with patch(
        "django.db.models.QuerySet.afirst",
        AsyncMock(side_effect=DatabaseError("connection lost")),
    ):
        with pytest.raises(AccessLookupError) as exc_info:
            async_to_sync(registry.resolve_owning_group_id)(Document, 7)

    assert exc_info.value.model_name == "tests.Document"


def test_scoping_setting_wins_over_discovery(registry):
    strategy = registry.strategy_for(Note)

    assert strategy.kind is ScopingKind.RELATION
    assert strategy.field_name == "reviewers"
