"""Selection and rendering of cloud configuration templates."""

from __future__ import annotations

import logging
import os
import re
import stat
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import urlsplit

import yaml

from sfcli.composer import has_composer_package, has_php_extension

logger = logging.getLogger(__name__)

SERVICE_DISK_SIZES = {"postgresql": "1024"}

_VERSION = re.compile(
    r"^v?([0-9]+(?:\.[0-9]+)*)"
    r"(?:-([0-9A-Za-z\-~]+(?:\.[0-9A-Za-z\-~]+)*))?"
    r"(?:\+[0-9A-Za-z\-~.]+)?$"
)


@dataclass
class CloudService:
    """A service to configure for the project."""

    name: str
    type: str
    version: str = ""


@dataclass
class ConfigRequirement:
    """A condition a project must meet for a template to apply."""

    type: str = ""
    value: str = ""

    def check(self, directory: str, minor_php_version: str) -> bool:
        """Evaluate the requirement against a project directory."""
        checker = template_checks(directory, minor_php_version).get(self.type)
        if checker is None:
            logger.error("unsupported check %s", self.type)
            return False
        return checker(self.value)


@dataclass
class ConfigTemplate:
    """A configuration template with the requirements selecting it."""

    requirements: list[ConfigRequirement] = field(default_factory=list)
    extra_files: dict[str, str] = field(default_factory=dict)
    template: str = ""

    def matches(self, directory: str, minor_php_version: str) -> bool:
        """Tell whether every requirement holds for the project."""
        return all(req.check(directory, minor_php_version) for req in self.requirements)


def _as_string(value: Any, what: str) -> str:
    if value is None or isinstance(value, str):
        return value or ""
    raise ValueError(f"{what} must be a string")


def _as_empty_or(value: Any, kind: type, what: str) -> Any:
    if value is None or value == "":
        return kind()
    if not isinstance(value, kind):
        raise ValueError(f"{what} has an unexpected type")
    return value


def load_config_template(text: str) -> ConfigTemplate | None:
    """Parse a YAML template definition; None for an empty document."""
    try:
        document = yaml.load(text, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid template: {exc}") from exc
    if document is None:
        return None
    if not isinstance(document, dict):
        raise ValueError("a template must be a mapping")

    requirements = []
    for item in _as_empty_or(document.get("requirements"), list, "requirements"):
        if item is None or item == "":
            requirements.append(ConfigRequirement())
            continue
        if not isinstance(item, dict):
            raise ValueError("every requirement must be a mapping")
        requirements.append(
            ConfigRequirement(
                type=_as_string(item.get("type"), "requirement type"),
                value=_as_string(item.get("value"), "requirement value"),
            )
        )

    extra_files = {
        _as_string(path, "extra file path"): _as_string(content, "extra file content")
        for path, content in _as_empty_or(
            document.get("extra_files"), dict, "extra_files"
        ).items()
    }
    return ConfigTemplate(
        requirements=requirements,
        extra_files=extra_files,
        template=_as_string(document.get("template"), "template"),
    )


def _fetch(url: str) -> str:
    try:
        with urllib.request.urlopen(url) as response:
            return response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raise ValueError(f"Got HTTP status code >= 400: {exc.code} {exc.reason}") from exc


def _template_name(filename: str) -> str:
    trimmed = filename[: -len(".yaml")] if filename.endswith(".yaml") else filename
    return trimmed[filename.find("-") + 1 :]


def find_template(
    templates_dir: str | os.PathLike,
    chosen_name: str,
    root_directory: str,
    minor_php_version: str,
) -> ConfigTemplate:
    """Pick the configuration template for a project.

    chosen_name may be a URL, a file path, the name of a template in
    templates_dir, or empty to select the first template whose
    requirements the project meets.
    """
    is_url = is_valid_url(chosen_name)
    is_file = is_valid_file_path(chosen_name)
    if is_url or is_file:
        if is_file:
            try:
                content = Path(chosen_name).read_text(encoding="utf-8")
            except (OSError, ValueError) as exc:
                raise ValueError(f"could not apply project template: {exc}") from exc
        else:
            content = _fetch(chosen_name)
        try:
            template = load_config_template(content)
        except ValueError as exc:
            raise ValueError(f"could not apply project template: {exc}") from exc
        if template is None:
            raise LookupError("no matching template found")
        logger.info("Using template %s", chosen_name)
        return template

    try:
        with os.scandir(templates_dir) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)
    except OSError as exc:
        raise ValueError(f"could not read configuration templates: {exc}") from exc

    for entry in entries:
        if entry.name == ".git":
            continue
        if entry.is_dir(follow_symlinks=False):
            logger.warning("%s is not a regular file", entry.name)
            continue
        name = _template_name(entry.name)
        is_chosen = chosen_name == name
        if chosen_name and not is_chosen:
            continue
        try:
            content = Path(entry.path).read_text(encoding="utf-8")
            template = load_config_template(content) or ConfigTemplate()
        except (OSError, ValueError) as exc:
            if is_chosen:
                raise ValueError(f"could not apply configuration template: {exc}") from exc
            logger.warning("%s", exc)
            continue
        if not chosen_name and not template.matches(root_directory, minor_php_version):
            continue
        print(f"Using configuration template {name}")
        return template

    raise LookupError("no matching template found")


def template_checks(root_directory: str, minor_php_version: str) -> dict[str, Callable[[str], bool]]:
    """Return the named checks a template requirement may use."""
    return {
        "file_exists": lambda name: os.path.exists(os.path.join(root_directory, name)),
        "has_composer_package": lambda package: has_composer_package(root_directory, package),
        "has_php_extension": lambda extension: has_php_extension(root_directory, extension),
        "php_at_least": lambda minimum: php_at_least(minor_php_version, minimum),
    }


def _parse_version(text: str) -> tuple[tuple[int, ...], str]:
    match = _VERSION.match(text)
    if match is None:
        raise ValueError(f"Malformed version: {text}")
    return tuple(int(part) for part in match.group(1).split(".")), match.group(2) or ""


def _compare_prerelease(left: str, right: str) -> int:
    if left == right:
        return 0
    if not left:
        return 1
    if not right:
        return -1
    for a, b in zip(left.split("."), right.split(".")):
        if a == b:
            continue
        if a.isdigit() and b.isdigit():
            return -1 if int(a) < int(b) else 1
        if a.isdigit() != b.isdigit():
            return -1 if a.isdigit() else 1
        return -1 if a < b else 1
    return -1 if len(left.split(".")) < len(right.split(".")) else 1


def php_at_least(minor_php_version: str, minimum: str) -> bool:
    """Tell whether a PHP version is greater than or equal to a minimum."""
    current, current_pre = _parse_version(minor_php_version)
    wanted, wanted_pre = _parse_version(minimum)
    width = max(len(current), len(wanted))
    current += (0,) * (width - len(current))
    wanted += (0,) * (width - len(wanted))
    if current != wanted:
        return current > wanted
    return _compare_prerelease(current_pre, wanted_pre) >= 0


def is_valid_url(value: str) -> bool:
    """Tell whether a string is a URL with a host."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.netloc.rpartition("@")[2])


def is_valid_file_path(value: str) -> bool:
    """Tell whether a path names an existing file that is not a directory."""
    try:
        info = os.stat(value)
    except (OSError, ValueError):
        return False
    return not stat.S_ISDIR(info.st_mode)


def render_services_yaml(
    services: Iterable[CloudService], disk_sizes: Mapping[str, str] | None = None
) -> str:
    """Render the services configuration file."""
    sizes = SERVICE_DISK_SIZES if disk_sizes is None else disk_sizes
    parts = ["\n"]
    for service in services:
        entry = f"{service.name}:\n    type: {service.type}"
        if service.version:
            entry += f":{service.version}"
        disk = sizes.get(service.type)
        if disk:
            entry += f"\n    disk: {disk}\n"
        parts.append(entry)
    return "".join(parts)


def render_routes_yaml(slug: str) -> str:
    """Render the routes configuration file for an application."""
    return (
        f'"https://{{all}}/": {{ type: upstream, upstream: "{slug}:http" }}\n'
        '"http://{all}/": { type: redirect, to: "https://{all}/" }\n'
    )