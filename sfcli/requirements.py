"""Checks that the tools needed to code along with the book are installed."""

from __future__ import annotations

import shutil
import subprocess

from sfcli.templates import php_at_least

MINIMUM_PHP_VERSION = "7.2.4"

PHP_EXTENSIONS = {
    "json": "required",
    "session": "required",
    "ctype": "required",
    "tokenizer": "required",
    "xml": "required",
    "intl": "required",
    "pdo_pgsql": "required",
    "mbstring": "required",
    "xsl": "required",
    "openssl": "required",
    "sodium": "required",
    "curl": "optional - needed only for chapter 17 (Panther)",
    "zip": "optional - needed only for chapter 17 (Panther)",
    "gd": "optional - needed only for chapter 23 (Imagine)",
    "redis": "optional - needed only for chapter 31",
    "amqp": "optional - needed only for chapter 32",
}

_TOOLS = (
    ("composer", "Composer", "Composer installed"),
    ("docker", "Docker", "Docker installed"),
    ("docker-compose", "Docker Compose", "Docker Compose installed"),
    ("yarn", "the Yarn package manager", "Yarn installed"),
)


def find_php() -> str | None:
    """Return the path of the PHP binary found on PATH, or None."""
    return shutil.which("php")


def php_version(php_path: str) -> str | None:
    """Return the version reported by a PHP binary, or None when it cannot run."""
    try:
        completed = subprocess.run(
            [php_path, "-r", "echo PHP_VERSION;"],
            capture_output=True,
            text=True,
            errors="replace",
        )
    except OSError:
        return None
    version = completed.stdout.strip()
    if completed.returncode != 0 or not version:
        return None
    return version


def installed_php_extensions(php_path: str) -> set[str]:
    """Return the module names listed by ``php -m``; empty when PHP fails."""
    try:
        completed = subprocess.run(
            [php_path, "-m"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError:
        return set()
    if completed.returncode != 0:
        return set()
    return set(completed.stdout.splitlines())


def _newer_than_minimum(version: str) -> bool:
    try:
        return not php_at_least(MINIMUM_PHP_VERSION, version)
    except ValueError:
        return False


def check_requirements() -> bool:
    """Report on every requirement and tell whether all required ones are met."""
    ready = True

    if shutil.which("git") is None:
        ready = False
        print("[KO] Cannot find Git, please install it")
    else:
        print("[OK] Git installed")

    php_path = find_php()
    version = php_version(php_path) if php_path else None
    if php_path is None or version is None:
        ready = False
        print("[KO] Cannot find PHP, please install it")
    elif _newer_than_minimum(version):
        print(f"[OK] PHP installed version {version} ({php_path})")
    else:
        ready = False
        print(
            f"[KO] PHP installed; version {version} found but we need version 7.2.5+ ({php_path})"
        )

    if php_path is not None and version is not None:
        installed = installed_php_extensions(php_path)
        for extension, reason in PHP_EXTENSIONS.items():
            if extension in installed:
                print(f'[OK] PHP extension "{extension}" installed - {reason}')
            elif reason == "required":
                ready = False
                print(f'[KO] PHP extension "{extension}" not found, please install it - {reason}')
            else:
                print(f'[KO] PHP extension "{extension}" not found, {reason}')

    for binary, label, found in _TOOLS:
        if shutil.which(binary) is None:
            ready = False
            print(f"[KO] Cannot find {label}, please install it")
        else:
            print(f"[OK] {found}")

    return ready