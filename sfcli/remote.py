"""Environment variables for an application running on the cloud platform."""

from __future__ import annotations

import base64
import binascii
import json
import os
import sys
from typing import Any
from urllib.parse import SplitResult

from sfcli.relationships import Environment, is_mailer_defined
from sfcli.routes import Route, parse_routes

MAILFROM_DOMAIN = "example.com"

_ROUTE_PATTERNS = ("://{default}/", "://{all}/", "://www.{default}/", "://www.{all}/")


class _DecodeError(ValueError):
    """Raised when a platform variable cannot be decoded."""


def _decode_variable(name: str) -> Any:
    raw = os.environ.get(name, "")
    try:
        data = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise _DecodeError(f"unable to decode {name}: {exc}") from exc
    try:
        return json.loads(data)
    except ValueError as exc:
        raise _DecodeError(f"unable to unmarshal {name}: {exc}") from exc


def _url_parses(route: Route) -> bool:
    try:
        route.url.port
    except ValueError:
        return False
    return True


def _host(url: SplitResult) -> str:
    return url.netloc.rpartition("@")[2]


def _port(url: SplitResult) -> str:
    try:
        port = url.port
    except ValueError:
        return ""
    return "" if port is None else str(port)


def _url_envs(url: SplitResult, prefixes: tuple[str, ...]) -> dict[str, str]:
    port = _port(url) or ("443" if url.scheme == "https" else "80")
    values: dict[str, str] = {}
    for prefix in prefixes:
        values[f"{prefix}URL"] = url.geturl()
        values[f"{prefix}HOST"] = _host(url)
        values[f"{prefix}SCHEME"] = url.scheme
        values[f"{prefix}PATH"] = url.path
        values[f"{prefix}PORT"] = port
    return values


class RemoteEnvironment(Environment):
    """The environment of an application deployed on the platform."""

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    def _log(self, message: str) -> None:
        if self.debug:
            print(message, file=sys.stderr)

    def path(self) -> str:
        return os.environ.get("PLATFORM_APP_DIR") or "/app"

    def local(self) -> bool:
        return False

    def relationships(self) -> dict[str, list[dict[str, Any]]] | None:
        if "PLATFORM_RELATIONSHIPS" not in os.environ:
            # most probably during the build phase
            self._log("PLATFORM_RELATIONSHIPS env var does not exist")
            return None
        try:
            result = _decode_variable("PLATFORM_RELATIONSHIPS")
        except _DecodeError as exc:
            self._log(str(exc))
            return None
        if not isinstance(result, dict) or not all(
            isinstance(endpoints, list) and all(isinstance(e, dict) for e in endpoints)
            for endpoints in result.values()
        ):
            self._log("unable to unmarshal PLATFORM_RELATIONSHIPS: unexpected structure")
            return None

        for name, endpoints in list(result.items()):
            for endpoint in endpoints:
                if endpoint.get("scheme") != "amqp":
                    continue
                name = name + "-management"
                management = dict(endpoint)
                management["port"] = "15672"
                management["scheme"] = "http"
                result[name] = [management]
        return result

    def mailer(self) -> dict[str, str]:
        if is_mailer_defined():
            return {"MAILER_ENABLED": "1"}

        values = {
            "MAILER_ENABLED": "1",
            "MAILER_PORT": "25",
            "MAILER_TRANSPORT": "smtp",
            "MAILER_AUTH_MODE": "plain",
            "MAILER_USER": "",
            "MAILER_PASSWORD": "",
        }
        host = os.environ.get("PLATFORM_SMTP_HOST", "")
        self._log(f"reading PLATFORM_SMTP_HOST: {host}")
        if not host:
            values["MAILER_ENABLED"] = "0"
            values["MAILER_URL"] = "null://localhost"
            values["MAILER_DSN"] = "null://localhost"
            values["MAILER_HOST"] = "localhost"
            return values
        suffix = ":" + values["MAILER_PORT"]
        if host.endswith(suffix):
            host = host[: -len(suffix)]
        url = f"smtp://{host}:{values['MAILER_PORT']}?verify_peer=0"
        values["MAILER_URL"] = url
        values["MAILER_DSN"] = url
        values["MAILER_HOST"] = host
        return values

    def extra(self) -> dict[str, str]:
        values: dict[str, str] = {}
        environ = os.environ

        if "APP_ENV" in environ:
            self._log(f"adding SYMFONY_ENV: {environ['APP_ENV']} (from APP_ENV)")
            values["SYMFONY_ENV"] = environ["APP_ENV"]
        elif "SYMFONY_ENV" in environ:
            self._log(f"adding APP_ENV: {environ['SYMFONY_ENV']} (from SYMFONY_ENV)")
            values["APP_ENV"] = environ["SYMFONY_ENV"]
        else:
            self._log("adding APP_ENV and SYMFONY_ENV: prod")
            values["APP_ENV"] = "prod"
            values["SYMFONY_ENV"] = "prod"

        if "APP_DEBUG" in environ:
            self._log(f"adding SYMFONY_DEBUG: {environ['APP_DEBUG']} (from APP_DEBUG)")
            values["SYMFONY_DEBUG"] = environ["APP_DEBUG"]
        elif "SYMFONY_DEBUG" in environ:
            self._log(f"adding APP_DEBUG: {environ['SYMFONY_DEBUG']} (from SYMFONY_DEBUG)")
            values["APP_DEBUG"] = environ["SYMFONY_DEBUG"]
        else:
            self._log("adding APP_DEBUG and SYMFONY_DEBUG: 0")
            values["APP_DEBUG"] = "0"
            values["SYMFONY_DEBUG"] = "0"

        if "APP_SECRET" not in environ and "PLATFORM_PROJECT_ENTROPY" in environ:
            self._log("adding APP_SECRET from PLATFORM_PROJECT_ENTROPY")
            values["APP_SECRET"] = environ["PLATFORM_PROJECT_ENTROPY"]

        project_url = self.project_default_url()
        if project_url is not None:
            values.update(
                _url_envs(project_url, ("SYMFONY_PROJECT_DEFAULT_ROUTE_", "SYMFONY_DEFAULT_ROUTE_"))
            )
        application_url = self.application_default_url()
        if application_url is not None:
            values.update(_url_envs(application_url, ("SYMFONY_APPLICATION_DEFAULT_ROUTE_",)))

        if "PLATFORM_APPLICATION_NAME" in environ:
            is_worker = "--" in environ["PLATFORM_APPLICATION_NAME"]
            values["SYMFONY_IS_WORKER"] = "1" if is_worker else "0"

        # default variables used by crons
        if "MAILFROM" not in environ:
            sender = environ.get("PLATFORM_PROJECT", "")
            if sender:
                branch = environ.get("PLATFORM_BRANCH", "")
                environment = environ.get("PLATFORM_ENVIRONMENT", "")
                if branch != "master":
                    sender += "+" + branch
                elif not environment.startswith("master-"):
                    sender += "+" + environment
                values["MAILFROM"] = f"{sender}@{MAILFROM_DOMAIN}"
        return values

    def _application(self) -> str:
        return os.environ.get("PLATFORM_APPLICATION_NAME", "").partition("--")[0]

    def _routes(self) -> list[Route] | None:
        raw = os.environ.get("PLATFORM_ROUTES", "")
        try:
            data = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as exc:
            self._log(f"unable to decode PLATFORM_ROUTES: {exc}")
            return None
        try:
            return parse_routes(data)
        except ValueError as exc:
            self._log(f"unable to unmarshal PLATFORM_ROUTES: {exc}")
            return None

    def project_default_url(self) -> SplitResult | None:
        """Return the default URL of the project, or None."""
        routes = self._routes()
        if routes is None:
            return None
        application = self._application()
        candidates = [r for r in routes if r.kind == "upstream" and _url_parses(r)]
        if not candidates:
            return None

        for pattern in _ROUTE_PATTERNS:
            for route in candidates:
                if route.original_url.endswith(pattern):
                    return route.url
        for pattern in _ROUTE_PATTERNS:
            for route in candidates:
                if route.upstream == application and pattern in route.original_url:
                    return route.url
        for route in candidates:
            if route.upstream == application:
                return route.url
        return candidates[0].url

    def application_default_url(self) -> SplitResult | None:
        """Return the default URL of the current application, or None."""
        routes = self._routes()
        if routes is None:
            return None
        application = self._application()
        candidates = [
            r
            for r in routes
            if r.kind == "upstream" and r.upstream == application and _url_parses(r)
        ]
        if not candidates:
            return None

        for pattern in _ROUTE_PATTERNS:
            for route in candidates:
                if route.original_url.endswith(pattern):
                    return route.url
        for pattern in _ROUTE_PATTERNS:
            for route in candidates:
                if pattern in route.original_url:
                    return route.url
        return candidates[0].url

    def language(self) -> str:
        try:
            application = _decode_variable("PLATFORM_APPLICATION")
        except _DecodeError as exc:
            self._log(str(exc))
            return "php"
        if not isinstance(application, dict):
            self._log("unable to unmarshal PLATFORM_APPLICATION: not an object")
            return "php"
        kind = application.get("type") or ""
        if not isinstance(kind, str):
            self._log("unable to unmarshal PLATFORM_APPLICATION: type is not a string")
            return "php"
        return kind.split(":")[0]