"""Reading of .env files the way a Symfony application loads them."""

from __future__ import annotations

import os
import re

_LINE = re.compile(r"^([A-Za-z_][A-Za-z0-9_.]*)\s*[=:]\s*(.*)$")
_DOUBLE_QUOTED = re.compile(r'^"((?:[^"\\]|\\.)*)"')
_SINGLE_QUOTED = re.compile(r"^'([^']*)'")
_VARIABLE = re.compile(r"(\\)?\$(\{)?([A-Za-z0-9_]+)(?(2)\})")
_ESCAPE = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "r": "\r"}


def _expand(value: str, known: dict[str, str]) -> str:
    def replace(match: re.Match) -> str:
        if match.group(1):
            return match.group(0)[1:]
        return known.get(match.group(3), "")

    return _VARIABLE.sub(replace, value)


def _unescape(value: str) -> str:
    def replace(match: re.Match) -> str:
        char = match.group(1)
        if char == "$":
            return match.group(0)
        return _ESCAPES.get(char, char)

    return _ESCAPE.sub(replace, value)


def _parse_value(raw: str, known: dict[str, str]) -> str:
    if raw.startswith("'"):
        match = _SINGLE_QUOTED.match(raw)
        if match is None:
            raise ValueError("unterminated single-quoted value")
        return match.group(1)
    if raw.startswith('"'):
        match = _DOUBLE_QUOTED.match(raw)
        if match is None:
            raise ValueError("unterminated double-quoted value")
        return _expand(_unescape(match.group(1)), known)
    value = raw.split(" #", 1)[0].strip()
    return _expand(value, known)


def parse_dotenv(text: str) -> dict[str, str]:
    """Parse the contents of a .env file into a mapping."""
    values: dict[str, str] = {}
    for number, raw_line in enumerate(text.splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        match = _LINE.match(line)
        if match is None:
            raise ValueError(f"line {number}: cannot parse {raw_line!r}")
        key, raw = match.groups()
        try:
            values[key] = _parse_value(raw, values)
        except ValueError as exc:
            raise ValueError(f"line {number}: {exc}") from exc
    return values


def read_dotenv(path: str | os.PathLike) -> dict[str, str]:
    """Read and parse a .env file."""
    with open(path, encoding="utf-8") as handle:
        return parse_dotenv(handle.read())


def _merge(values: dict[str, str], path: str) -> None:
    if not os.path.exists(path):
        return
    try:
        extra = read_dotenv(path)
    except (OSError, ValueError):
        return
    for key, value in extra.items():
        values.setdefault(key, value)


def find_dotenv_dir(directory: str) -> str:
    """Return the nearest directory holding .env or .env.dist, or an empty string."""
    while True:
        if os.path.exists(os.path.join(directory, ".env")):
            return directory
        if os.path.exists(os.path.join(directory, ".env.dist")):
            return directory
        parent = os.path.dirname(directory)
        if parent == directory or not parent:
            return ""
        directory = parent


def lookup_dotenv(directory: str) -> dict[str, str] | None:
    """Load the .env files of a directory; None when the main file is malformed."""
    values: dict[str, str] = {}
    main = os.path.join(directory, ".env")
    dist = os.path.join(directory, ".env.dist")
    try:
        if os.path.exists(main):
            values = read_dotenv(main)
        elif os.path.exists(dist):
            values = read_dotenv(dist)
    except (OSError, ValueError):
        return None

    env = os.environ.get("APP_ENV") or values.get("APP_ENV") or "dev"
    values["APP_ENV"] = env

    if env != "test":
        _merge(values, os.path.join(directory, ".env.local"))
    _merge(values, os.path.join(directory, f".env.{env}"))
    _merge(values, os.path.join(directory, f".env.{env}.local"))
    return values


def load_dotenv(variables: dict[str, str], script_dir: str) -> dict[str, str]:
    """Add variables from the nearest .env files without overriding existing ones."""
    dotenv_dir = find_dotenv_dir(script_dir)
    variables["SYMFONY_DOTENV_VARS"] = os.environ.get("SYMFONY_DOTENV_VARS", "")
    for key, value in (lookup_dotenv(dotenv_dir) or {}).items():
        if key in variables:
            continue
        variables[key] = value
        if key != "APP_ENV":
            if variables["SYMFONY_DOTENV_VARS"]:
                variables["SYMFONY_DOTENV_VARS"] += ","
            variables["SYMFONY_DOTENV_VARS"] += key
    return variables