"""
Settings used by the library's own test suite.
"""

SECRET_KEY = "rail-access-groups-test-key"
DEBUG = False

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "graphene_django",
    "rail_access_groups",
    "tests",
]

MIDDLEWARE = [
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "rail_access_groups.middleware.AccessContextMiddleware",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

MIGRATION_MODULES = {"tests": None}

USE_TZ = True
TIME_ZONE = "UTC"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

ACCESS_GROUPS = {
    "group_model": "tests.Team",
    "group_access_model": "tests.TeamMembership",
    "user_key": "user_id",
    "group_key": "team_id",
    "group_roles": ["$group:admin", "$group:member"],
    "apply_to_static": False,
    "scoping": {
        "tests.AuditEntry": {"scoped": False},
        "tests.Note": {"group_relation": "reviewers"},
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "loggers": {
        "rail_access_groups": {"handlers": ["console"], "level": "WARNING"},
    },
}
