"""Tunnels exposing remote services on the local machine."""

from __future__ import annotations

import json
import os
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_PATH_CLEANING = re.compile(r"[^a-zA-Z0-9-.]+")


def control_file_name(
    directory: str, project_id: str, env_id: str, app_name: str = "", worker_name: str = ""
) -> str:
    """Return the path of the state file of a tunnel."""
    filename = f"{project_id}-{env_id}"
    if app_name:
        filename += f"--{app_name}"
    if worker_name:
        filename += f"--{worker_name}"
    filename += ".json"
    cleaned = _PATH_CLEANING.sub("-", posixpath.normpath(filename))
    return os.path.join(directory, cleaned)


def relationships_from_tunnel_info(
    data: str | bytes, project_id: str, env_id: str, app_name: str
) -> dict[str, list[dict[str, Any]]] | None:
    """Build relationships from tunnel information for one project, env and app."""
    try:
        entries = json.loads(data)
    except ValueError as exc:
        raise ValueError(f"unable to unmarshal tunnel data: {exc}") from exc
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ValueError("unable to unmarshal tunnel data: expected a list of objects")

    relationships: dict[str, list[dict[str, Any]]] = {}
    for entry in entries:
        if (
            entry.get("projectId", "") != project_id
            or entry.get("environmentId", "") != env_id
            or entry.get("appName", "") != app_name
        ):
            continue
        service = dict(entry.get("service") or {})
        service["port"] = str(entry.get("localPort", 0))
        service["host"] = "127.0.0.1"
        service["ip"] = "127.0.0.1"
        relationships.setdefault(entry.get("relationship", ""), []).append(service)
    return relationships or None


@dataclass
class Tunnel:
    """Local state of a tunnel for a project environment and application."""

    home_dir: str
    project_id: str
    env_id: str
    app_name: str = ""
    worker: str = ""

    @property
    def path(self) -> str:
        """Path of the tunnel state file."""
        return control_file_name(
            os.path.join(self.home_dir, "tunnels"),
            self.project_id,
            self.env_id,
            self.app_name,
            self.worker,
        )

    def is_exposed(self) -> bool:
        """Tell whether the tunnel services are exposed as environment variables."""
        return Path(self.path + "-expose").exists()

    def expose(self, expose: bool) -> None:
        """Turn the exposure of the tunnel services on or off."""
        marker = Path(self.path + "-expose")
        if expose:
            marker.touch()
        else:
            marker.unlink(missing_ok=True)