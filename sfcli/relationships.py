"""Turn service relationships of a project into environment variables."""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping

Endpoint = Mapping[str, Any]
Relationships = Mapping[str, list]

# Application type prefix of Go applications; their database URLs get no charset.
GO_LANGUAGE = "go" + "lang"


class Environment(ABC):
    """Source of environment variables, either local or remote."""

    @abstractmethod
    def path(self) -> str:
        """Return the project directory."""

    @abstractmethod
    def mailer(self) -> dict[str, str] | None:
        """Return mailer-related variables."""

    @abstractmethod
    def language(self) -> str:
        """Return the application language, such as php or nodejs."""

    @abstractmethod
    def relationships(self) -> dict[str, list[dict[str, Any]]] | None:
        """Return the service relationships of the project."""

    @abstractmethod
    def extra(self) -> dict[str, str] | None:
        """Return environment-specific extra variables."""

    @abstractmethod
    def local(self) -> bool:
        """Return True when running on a local machine."""


def app_id(path: str | os.PathLike) -> str:
    """Return the Symfony project ID from composer.json, or an empty string."""
    try:
        content = (Path(path) / "composer.json").read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, ValueError):
        return ""
    if not isinstance(data, dict):
        return ""
    extra = data.get("extra")
    if not isinstance(extra, dict):
        return ""
    symfony = extra.get("symfony")
    if not isinstance(symfony, dict):
        return ""
    identifier = symfony.get("id")
    return identifier if isinstance(identifier, str) else ""


def format_int(value: Any) -> str:
    """Format a port-like value: strings pass through, numbers are truncated."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"cannot format {value!r} as an integer")
    return str(int(value))


def format_server(endpoint: Endpoint) -> str:
    """Return scheme://host:port for an endpoint."""
    return f"{endpoint['scheme']}://{endpoint['host']}:{format_int(endpoint['port'])}"


def is_master(endpoint: Endpoint) -> bool:
    """Tell whether an endpoint is the master of a master/slave setup (default True)."""
    query = endpoint.get("query")
    if isinstance(query, dict):
        flag = query.get("is_master")
        if isinstance(flag, bool):
            return flag
    return True


def is_mailer_defined() -> bool:
    """Tell whether a mailer is already configured in the process environment."""
    return any(name in os.environ for name in ("MAILER_URL", "MAILER_DSN", "MAILER_HOST"))


def _database_envs(endpoint: Endpoint, prefix: str, language: str, local: bool) -> dict[str, str]:
    scheme = endpoint["scheme"]
    driver = "postgres" if scheme == "pgsql" else scheme
    host = endpoint["host"]
    port = format_int(endpoint["port"])
    values: dict[str, str] = {}

    url = f"{driver}://"
    username = endpoint.get("username")
    if isinstance(username, str) and username:
        url += username
        values[f"{prefix}USER"] = username
        values[f"{prefix}USERNAME"] = username
        secret = endpoint.get("password")
        if isinstance(secret, str) and secret:
            url += f":{secret}"
            values[f"{prefix}PASSWORD"] = secret
        url += "@"

    path = endpoint.get("path")
    if not (isinstance(path, str) and path):
        path = "main"
    url += f"{host}:{port}/{path}?sslmode=disable"

    if language != GO_LANGUAGE:
        charset = os.environ.get(f"{prefix}CHARSET") or ("utf8mb4" if scheme == "mysql" else "utf8")
        url += "&charset=" + charset

    if language == "php" and "type" in endpoint:
        version_key = f"{prefix}VERSION"
        version = os.environ.get(version_key)
        if version is None and ":" in endpoint["type"]:
            version = endpoint["type"].split(":", 1)[1]
            # the service actually provided is MariaDB, not MySQL
            if driver == "mysql":
                minor = 7 if version == "10.2" else 0
                version = f"mariadb-{version}.{minor}"
        if version is not None:
            values[version_key] = version
            url += "&serverVersion=" + version

    values[f"{prefix}URL"] = url
    values[f"{prefix}SERVER"] = f"{driver}://{host}:{port}"
    values[f"{prefix}DRIVER"] = driver
    values[f"{prefix}HOST"] = host
    values[f"{prefix}PORT"] = port
    values[f"{prefix}NAME"] = path
    values[f"{prefix}DATABASE"] = path

    if local:
        if scheme == "pgsql":
            values["PGHOST"] = host
            values["PGPORT"] = port
            values["PGDATABASE"] = path
            values["PGUSER"] = endpoint["username"]
            values["PGPASSWORD"] = endpoint["password"]
        else:
            values["MYSQL_HOST"] = host
            values["MYSQL_TCP_PORT"] = port
    return values


def _endpoint_envs(endpoint: Endpoint, prefix: str, language: str, local: bool) -> dict[str, str]:
    scheme = endpoint.get("scheme")
    rel = endpoint.get("rel")

    if scheme in ("pgsql", "mysql"):
        if not is_master(endpoint):
            return {}
        return _database_envs(endpoint, prefix, language, local)

    host = endpoint.get("host")
    port = format_int(endpoint["port"]) if "port" in endpoint else None

    if scheme == "redis":
        return {
            f"{prefix}URL": f"redis://{host}:{port}",
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}SCHEME": scheme,
        }
    if scheme == "solr":
        return {
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}NAME": endpoint["path"],
            f"{prefix}DATABASE": endpoint["path"],
        }
    if rel == "elasticsearch":
        return {
            f"{prefix}URL": f"{scheme}://{host}:{port}",
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}SCHEME": scheme,
        }
    if scheme == "mongodb":
        if not is_master(endpoint):
            return {}
        return {
            f"{prefix}SERVER": format_server(endpoint),
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}SCHEME": scheme,
            f"{prefix}NAME": endpoint["path"],
            f"{prefix}DATABASE": endpoint["path"],
            f"{prefix}USER": endpoint["username"],
            f"{prefix}USERNAME": endpoint["username"],
            f"{prefix}PASSWORD": endpoint["password"],
        }
    if scheme == "amqp":
        dsn = f"{scheme}://{endpoint['username']}:{endpoint['password']}@{host}:{port}"
        return {
            f"{prefix}URL": dsn,
            f"{prefix}DSN": dsn,
            f"{prefix}SERVER": format_server(endpoint),
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}SCHEME": scheme,
            f"{prefix}USER": endpoint["username"],
            f"{prefix}USERNAME": endpoint["username"],
            f"{prefix}PASSWORD": endpoint["password"],
        }
    if scheme == "memcached":
        return {f"{prefix}HOST": host, f"{prefix}PORT": port, f"{prefix}IP": endpoint["ip"]}
    if rel == "influxdb":
        return {
            f"{prefix}SCHEME": scheme,
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}IP": endpoint["ip"],
        }
    if scheme == "kafka":
        return {
            f"{prefix}URL": f"{scheme}://{host}:{port}",
            f"{prefix}SCHEME": scheme,
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}IP": endpoint["ip"],
        }
    if scheme == "tcp":
        return {
            f"{prefix}URL": format_server(endpoint),
            f"{prefix}IP": endpoint["ip"],
            f"{prefix}PORT": port,
            f"{prefix}SCHEME": scheme,
            f"{prefix}HOST": host,
        }
    if rel == "mercure":
        url = f"{scheme}://{host}:{port}/.well-known/mercure"
        return {"MERCURE_URL": url, "MERCURE_PUBLIC_URL": url}
    if scheme == "http":
        username = endpoint.get("username")
        secret = endpoint.get("password")
        has_username = isinstance(username, str)
        has_secret = isinstance(secret, str)
        if has_username or has_secret:
            url = f"{scheme}://{username or ''}:{secret or ''}@{host}:{port}"
        else:
            url = f"{scheme}://{host}:{port}"
        values = {
            f"{prefix}URL": url,
            f"{prefix}SERVER": format_server(endpoint),
            f"{prefix}IP": endpoint["ip"],
            f"{prefix}PORT": port,
            f"{prefix}SCHEME": scheme,
            f"{prefix}HOST": host,
        }
        if has_username:
            values[f"{prefix}USER"] = username
            values[f"{prefix}USERNAME"] = username
        if has_secret:
            values[f"{prefix}PASSWORD"] = secret
        return values
    if scheme == "smtp":
        url = f"{scheme}://{host}:{port}"
        return {
            "MAILER_CATCHER": "1",
            f"{prefix}DRIVER": scheme,
            f"{prefix}HOST": host,
            f"{prefix}PORT": port,
            f"{prefix}USERNAME": "",
            f"{prefix}PASSWORD": "",
            f"{prefix}AUTH_MODE": "",
            f"{prefix}URL": url,
            f"{prefix}DSN": url,
        }
    if rel == "simple":
        return {f"{prefix}IP": endpoint["ip"], f"{prefix}PORT": port, f"{prefix}HOST": host}
    return {}


def extract_relationship_envs(
    relationships: Relationships | None, language: str, local: bool
) -> dict[str, str]:
    """Compute the environment variables exposing every relationship endpoint."""
    values: dict[str, str] = {}
    for key, endpoints in (relationships or {}).items():
        name = key.upper()
        for index, endpoint in enumerate(endpoints):
            prefix = f"{name}_" if index == 0 else f"{name}_{index}_"
            prefix = prefix.replace("-", "_")
            values.update(_endpoint_envs(endpoint, prefix, language, local))
    return values


def as_map(env: Environment) -> dict[str, str]:
    """Return every variable extracted from an environment."""
    values: dict[str, str] = {}
    identifier = app_id(env.path())
    if identifier:
        values["APP_ID"] = identifier
    values.update(extract_relationship_envs(env.relationships(), env.language(), env.local()))
    values.update(env.mailer() or {})
    values.update(env.extra() or {})
    return values


def as_list(env: Environment) -> list[str]:
    """Return the variables as KEY=VALUE strings."""
    return [f"{key}={value}" for key, value in as_map(env).items()]


def as_string(env: Environment) -> str:
    """Return the variables as a single space-separated string."""
    return " ".join(as_list(env))