import base64
import json

import pytest

from sfcli.remote import RemoteEnvironment

_VARIABLES = [
    "PLATFORM_APP_DIR",
    "PLATFORM_RELATIONSHIPS",
    "PLATFORM_SMTP_HOST",
    "PLATFORM_ROUTES",
    "PLATFORM_APPLICATION",
    "PLATFORM_APPLICATION_NAME",
    "PLATFORM_PROJECT",
    "PLATFORM_BRANCH",
    "PLATFORM_ENVIRONMENT",
    "PLATFORM_PROJECT_ENTROPY",
    "MAILER_URL",
    "MAILER_DSN",
    "MAILER_HOST",
    "MAILFROM",
    "APP_ENV",
    "SYMFONY_ENV",
    "APP_DEBUG",
    "SYMFONY_DEBUG",
    "APP_SECRET",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARIABLES:
        monkeypatch.delenv(name, raising=False)


def encode(value):
    return base64.b64encode(json.dumps(value).encode()).decode()


ROUTES = {
    "https://www.example.com/": {
        "type": "upstream",
        "upstream": "app",
        "original_url": "https://www.{default}/",
    },
    "https://example.com/": {
        "type": "upstream",
        "upstream": "app",
        "original_url": "https://{default}/",
    },
    "http://example.com/": {
        "type": "redirect",
        "to": "https://example.com/",
        "original_url": "http://{default}/",
    },
}


def test_path_defaults_and_override(monkeypatch):
    env = RemoteEnvironment()
    assert env.path() == "/app"
    monkeypatch.setenv("PLATFORM_APP_DIR", "/srv/project")
    assert env.path() == "/srv/project"
    assert env.local() is False


def test_relationships_missing_or_invalid(monkeypatch):
    env = RemoteEnvironment()
    assert env.relationships() is None
    monkeypatch.setenv("PLATFORM_RELATIONSHIPS", "!!not base64!!")
    assert env.relationships() is None


def test_relationships_add_amqp_management(monkeypatch):
    rels = {
        "rabbitmq": [{"scheme": "amqp", "host": "rabbit.internal", "port": 5672}],
        "database": [{"scheme": "pgsql", "host": "db.internal", "port": 5432}],
    }
    monkeypatch.setenv("PLATFORM_RELATIONSHIPS", encode(rels))
    result = RemoteEnvironment().relationships()
    assert result["database"] == rels["database"]
    management = result["rabbitmq-management"]
    assert len(management) == 1
    assert management[0]["port"] == "15672"
    assert management[0]["scheme"] == "http"
    assert management[0]["host"] == "rabbit.internal"
    assert result["rabbitmq"][0]["scheme"] == "amqp"


def test_mailer_already_defined(monkeypatch):
    monkeypatch.setenv("MAILER_DSN", "smtp://localhost")
    assert RemoteEnvironment().mailer() == {"MAILER_ENABLED": "1"}


def test_mailer_without_smtp_host():
    values = RemoteEnvironment().mailer()
    assert values["MAILER_ENABLED"] == "0"
    assert values["MAILER_URL"] == "null://localhost"
    assert values["MAILER_DSN"] == "null://localhost"
    assert values["MAILER_HOST"] == "localhost"


def test_mailer_with_smtp_host(monkeypatch):
    monkeypatch.setenv("PLATFORM_SMTP_HOST", "smtp.example.com:25")
    values = RemoteEnvironment().mailer()
    assert values["MAILER_ENABLED"] == "1"
    assert values["MAILER_HOST"] == "smtp.example.com"
    assert values["MAILER_URL"] == "smtp://smtp.example.com:25?verify_peer=0"
    assert values["MAILER_DSN"] == values["MAILER_URL"]
    assert values["MAILER_TRANSPORT"] == "smtp"


def test_extra_defaults():
    values = RemoteEnvironment().extra()
    assert values["APP_ENV"] == "prod"
    assert values["SYMFONY_ENV"] == "prod"
    assert values["APP_DEBUG"] == "0"
    assert values["SYMFONY_DEBUG"] == "0"
    assert "SYMFONY_IS_WORKER" not in values
    assert "MAILFROM" not in values


def test_extra_mirrors_app_env_and_secret(monkeypatch):
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("SYMFONY_DEBUG", "1")
    monkeypatch.setenv("PLATFORM_PROJECT_ENTROPY", "entropy-value")
    values = RemoteEnvironment().extra()
    assert values["SYMFONY_ENV"] == "staging"
    assert "APP_ENV" not in values
    assert values["APP_DEBUG"] == "1"
    assert values["APP_SECRET"] == "entropy-value"


def test_extra_worker_flag(monkeypatch):
    monkeypatch.setenv("PLATFORM_APPLICATION_NAME", "app--worker")
    assert RemoteEnvironment().extra()["SYMFONY_IS_WORKER"] == "1"
    monkeypatch.setenv("PLATFORM_APPLICATION_NAME", "app")
    assert RemoteEnvironment().extra()["SYMFONY_IS_WORKER"] == "0"


def test_extra_mailfrom_uses_project_and_branch(monkeypatch):
    monkeypatch.setenv("PLATFORM_PROJECT", "proj")
    monkeypatch.setenv("PLATFORM_BRANCH", "feature")
    assert RemoteEnvironment().extra()["MAILFROM"].startswith("proj+feature@")


def test_project_default_url_prefers_main_route(monkeypatch):
    monkeypatch.setenv("PLATFORM_ROUTES", encode(ROUTES))
    monkeypatch.setenv("PLATFORM_APPLICATION_NAME", "app")
    env = RemoteEnvironment()
    assert env.project_default_url().geturl() == "https://example.com/"
    assert env.application_default_url().geturl() == "https://example.com/"


def test_extra_route_variables(monkeypatch):
    monkeypatch.setenv("PLATFORM_ROUTES", encode(ROUTES))
    monkeypatch.setenv("PLATFORM_APPLICATION_NAME", "app")
    values = RemoteEnvironment().extra()
    for prefix in (
        "SYMFONY_PROJECT_DEFAULT_ROUTE_",
        "SYMFONY_DEFAULT_ROUTE_",
        "SYMFONY_APPLICATION_DEFAULT_ROUTE_",
    ):
        assert values[prefix + "URL"] == "https://example.com/"
        assert values[prefix + "HOST"] == "example.com"
        assert values[prefix + "SCHEME"] == "https"
        assert values[prefix + "PATH"] == "/"
        assert values[prefix + "PORT"] == "443"


def test_application_url_only_for_current_app(monkeypatch):
    routes = {
        "https://api.example.com/": {
            "type": "upstream",
            "upstream": "api",
            "original_url": "https://api.{default}/",
        },
    }
    monkeypatch.setenv("PLATFORM_ROUTES", encode(routes))
    monkeypatch.setenv("PLATFORM_APPLICATION_NAME", "app")
    env = RemoteEnvironment()
    assert env.application_default_url() is None
    assert env.project_default_url().geturl() == "https://api.example.com/"


def test_route_urls_absent_without_routes():
    env = RemoteEnvironment()
    assert env.project_default_url() is None
    assert env.application_default_url() is None


def test_language(monkeypatch):
    env = RemoteEnvironment()
    assert env.language() == "php"
    monkeypatch.setenv("PLATFORM_APPLICATION", encode({"type": "nodejs:16"}))
    assert env.language() == "nodejs"