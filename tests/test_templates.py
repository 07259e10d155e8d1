import json

import pytest

from sfcli.templates import (
    CloudService,
    ConfigRequirement,
    ConfigTemplate,
    find_template,
    is_valid_file_path,
    is_valid_url,
    load_config_template,
    php_at_least,
    render_routes_yaml,
    render_services_yaml,
    template_checks,
)

SYMFONY_TEMPLATE = """\
requirements:
  - type: file_exists
    value: symfony.lock
extra_files:
  .env.prod: "APP_ENV=prod"
template: symfony body
"""

GENERIC_TEMPLATE = "template: generic body\n"


@pytest.fixture
def templates_dir(tmp_path):
    directory = tmp_path / "templates"
    directory.mkdir()
    (directory / ".git").mkdir()
    (directory / "1-symfony.yaml").write_text(SYMFONY_TEMPLATE, encoding="utf-8")
    (directory / "2-generic.yaml").write_text(GENERIC_TEMPLATE, encoding="utf-8")
    (directory / "php.ini").write_text("memory_limit = 256M\n", encoding="utf-8")
    return directory


@pytest.fixture
def project(tmp_path):
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


def test_render_routes_yaml():
    assert render_routes_yaml("app") == (
        '"https://{all}/": { type: upstream, upstream: "app:http" }\n'
        '"http://{all}/": { type: redirect, to: "https://{all}/" }\n'
    )


def test_render_services_yaml_with_disk():
    out = render_services_yaml([CloudService("database", "postgresql", "13")])
    assert out == "\ndatabase:\n    type: postgresql:13\n    disk: 1024\n"


def test_render_services_yaml_without_version_or_disk():
    out = render_services_yaml([CloudService("cache", "redis")])
    assert out.startswith("\ncache:\n    type: redis")
    assert "disk" not in out
    assert "redis:" not in out


def test_render_services_yaml_custom_sizes():
    out = render_services_yaml([CloudService("cache", "redis", "6.0")], {"redis": "512"})
    assert "    disk: 512\n" in out
    assert "type: redis:6.0" in out


@pytest.mark.parametrize(
    "current, minimum, expected",
    [
        ("8.1", "7.4", True),
        ("7.4", "8.0", False),
        ("8.0", "8.0", True),
        ("8.0", "8.0.0", True),
        ("8.1.0-beta1", "8.1.0", False),
        ("7.4", "7.2.5", True),
    ],
)
def test_php_at_least(current, minimum, expected):
    assert php_at_least(current, minimum) is expected


def test_php_at_least_invalid_version():
    with pytest.raises(ValueError):
        php_at_least("8.1", "not-a-version")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://example.com/template.yaml", True),
        ("http://localhost:8080/", True),
        ("symfony", False),
        ("", False),
        ("/tmp/file.yaml", False),
    ],
)
def test_is_valid_url(value, expected):
    assert is_valid_url(value) is expected


def test_is_valid_file_path(tmp_path):
    target = tmp_path / "t.yaml"
    target.write_text("x", encoding="utf-8")
    assert is_valid_file_path(str(target)) is True
    assert is_valid_file_path(str(tmp_path)) is False
    assert is_valid_file_path(str(tmp_path / "missing")) is False


def test_load_config_template():
    template = load_config_template(SYMFONY_TEMPLATE)
    assert template.requirements == [ConfigRequirement("file_exists", "symfony.lock")]
    assert template.extra_files == {".env.prod": "APP_ENV=prod"}
    assert template.template == "symfony body"


def test_load_config_template_keeps_scalars_as_text():
    template = load_config_template("requirements:\n  - type: php_at_least\n    value: 8.10\n")
    assert template.requirements[0].value == "8.10"


def test_load_config_template_empty_document():
    assert load_config_template("") is None


def test_load_config_template_errors():
    with pytest.raises(ValueError):
        load_config_template("- a\n- b\n")
    with pytest.raises(ValueError):
        load_config_template("template: [unclosed\n")


def test_requirement_file_exists(project):
    requirement = ConfigRequirement("file_exists", "symfony.lock")
    assert requirement.check(str(project), "8.1") is False
    (project / "symfony.lock").write_text("{}", encoding="utf-8")
    assert requirement.check(str(project), "8.1") is True


def test_requirement_composer_package(project):
    (project / "composer.json").write_text(
        json.dumps({"require": {"symfony/framework-bundle": "^6.0"}}), encoding="utf-8"
    )
    assert ConfigRequirement("has_composer_package", "symfony/framework-bundle").check(
        str(project), "8.1"
    ) is True
    assert ConfigRequirement("has_php_extension", "intl").check(str(project), "8.1") is False


def test_requirement_unsupported_check(project):
    assert ConfigRequirement("php_extensions", "").check(str(project), "8.1") is False
    assert ConfigRequirement("unknown", "x").check(str(project), "8.1") is False


def test_template_checks_php_at_least(project):
    checks = template_checks(str(project), "8.1")
    assert checks["php_at_least"]("7.4") is True
    assert checks["php_at_least"]("8.2") is False


def test_config_template_matches(project):
    template = ConfigTemplate(
        requirements=[
            ConfigRequirement("php_at_least", "7.4"),
            ConfigRequirement("file_exists", "symfony.lock"),
        ]
    )
    assert template.matches(str(project), "8.1") is False
    (project / "symfony.lock").write_text("{}", encoding="utf-8")
    assert template.matches(str(project), "8.1") is True
    assert ConfigTemplate().matches(str(project), "8.1") is True


def test_find_template_auto_detects(templates_dir, project):
    found = find_template(templates_dir, "", str(project), "8.1")
    assert found.template == "generic body"
    (project / "symfony.lock").write_text("{}", encoding="utf-8")
    found = find_template(templates_dir, "", str(project), "8.1")
    assert found.template == "symfony body"


def test_find_template_by_name(templates_dir, project):
    found = find_template(templates_dir, "symfony", str(project), "8.1")
    assert found.template == "symfony body"


def test_find_template_unknown_name(templates_dir, project):
    with pytest.raises(LookupError):
        find_template(templates_dir, "missing", str(project), "8.1")


def test_find_template_from_file(templates_dir, project, tmp_path):
    custom = tmp_path / "custom.yaml"
    custom.write_text("template: custom body\n", encoding="utf-8")
    found = find_template(templates_dir, str(custom), str(project), "8.1")
    assert found.template == "custom body"


def test_find_template_broken_chosen(templates_dir, project):
    (templates_dir / "3-broken.yaml").write_text("- a\n", encoding="utf-8")
    with pytest.raises(ValueError):
        find_template(templates_dir, "broken", str(project), "8.1")


def test_find_template_empty_dir(tmp_path, project):
    empty = tmp_path / "empty"
    empty.mkdir()
    with pytest.raises(LookupError):
        find_template(empty, "", str(project), "8.1")


def test_find_template_missing_dir(tmp_path, project):
    with pytest.raises(ValueError):
        find_template(tmp_path / "nowhere", "", str(project), "8.1")