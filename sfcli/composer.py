"""Inspection of the Composer files of a PHP project."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ComposerLock:
    """The parts of composer.lock that matter for project setup."""

    platform: dict[str, str] = field(default_factory=dict)
    platform_overrides: dict[str, str] = field(default_factory=dict)
    packages: dict[str, str] = field(default_factory=dict)
    packages_dev: dict[str, str] = field(default_factory=dict)


@dataclass
class ComposerJSON:
    """The parts of composer.json that matter for project setup."""

    config_platform: dict[str, str] = field(default_factory=dict)
    require: dict[str, str] = field(default_factory=dict)
    require_dev: dict[str, str] = field(default_factory=dict)


def _load_object(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


def _string_map(value: Any, name: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name}: expected an object")
    result: dict[str, str] = {}
    for key, item in value.items():
        if item is not None and not isinstance(item, str):
            raise ValueError(f"{name}: value of {key!r} must be a string")
        result[key] = item or ""
    return result


def _packages(value: Any, name: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, list):
        raise ValueError(f"{name}: expected a list")
    result: dict[str, str] = {}
    for item in value:
        if item is None:
            continue
        if not isinstance(item, dict):
            raise ValueError(f"{name}: every package must be an object")
        fields = {key.lower(): entry for key, entry in item.items()}
        package = fields.get("name")
        version = fields.get("version")
        for entry in (package, version):
            if entry is not None and not isinstance(entry, str):
                raise ValueError(f"{name}: package name and version must be strings")
        result[package or ""] = version or ""
    return result


def parse_composer_lock(directory: str | os.PathLike) -> ComposerLock:
    """Read composer.lock; raises OSError or ValueError when it is unusable."""
    data = _load_object(Path(directory) / "composer.lock")
    return ComposerLock(
        platform=_string_map(data.get("platform"), "platform"),
        platform_overrides=_string_map(data.get("platform-overrides"), "platform-overrides"),
        packages=_packages(data.get("packages"), "packages"),
        packages_dev=_packages(data.get("packages-dev"), "packages-dev"),
    )


def parse_composer_json(directory: str | os.PathLike) -> ComposerJSON:
    """Read composer.json; raises OSError or ValueError when it is unusable."""
    data = _load_object(Path(directory) / "composer.json")
    config = data.get("config")
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError("config: expected an object")
    return ComposerJSON(
        config_platform=_string_map(config.get("platform"), "config.platform"),
        require=_string_map(data.get("require"), "require"),
        require_dev=_string_map(data.get("require-dev"), "require-dev"),
    )


def _try_lock(directory: str | os.PathLike) -> tuple[ComposerLock | None, Exception | None]:
    try:
        return parse_composer_lock(directory), None
    except (OSError, ValueError) as exc:
        return None, exc


def _try_json(directory: str | os.PathLike) -> tuple[ComposerJSON | None, Exception | None]:
    try:
        return parse_composer_json(directory), None
    except (OSError, ValueError) as exc:
        return None, exc


def _warn(*errors: Exception | None) -> None:
    for error in errors:
        if error is not None:
            logger.warning("%s", error)


def has_composer_package(directory: str | os.PathLike, package: str) -> bool:
    """Tell whether the project depends on a Composer package."""
    lock, lock_error = _try_lock(directory)
    if lock is not None:
        return package in lock.packages or package in lock.packages_dev

    manifest, json_error = _try_json(directory)
    if manifest is not None:
        return package in manifest.require or package in manifest.require_dev

    _warn(lock_error, json_error)
    return False


def php_extensions(directory: str | os.PathLike) -> list[str]:
    """Return the PHP extensions the project requires, without the ext- prefix."""
    extensions: list[str] = []

    def add(names: dict[str, str]) -> None:
        for name in names:
            if name.startswith("ext-") and name[4:] not in extensions:
                extensions.append(name[4:])

    lock, lock_error = _try_lock(directory)
    if lock is not None:
        add(lock.platform)

    manifest, json_error = _try_json(directory)
    if manifest is not None:
        add(manifest.require)
        add(manifest.require_dev)

    _warn(lock_error, json_error)
    return extensions


def has_php_extension(directory: str | os.PathLike, extension: str) -> bool:
    """Tell whether the project requires a PHP extension (with or without ext-)."""
    if not extension.startswith("ext-"):
        extension = f"ext-{extension}"

    lock, lock_error = _try_lock(directory)
    if lock is not None:
        return extension in lock.platform

    manifest, json_error = _try_json(directory)
    if manifest is not None:
        return extension in manifest.require or extension in manifest.require_dev

    _warn(lock_error, json_error)
    return False