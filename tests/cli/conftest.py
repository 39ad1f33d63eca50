# tests/cli/conftest.py
"""Shared fixtures for CLI tests."""

import json
from pathlib import Path
from typing import Any

import pytest

CHANNEL_ID = "8d1c2b3a-4e5f-4a6b-9c7d-0e1f2a3b4c5d"


def channel_payload() -> dict[str, Any]:
    """A small valid channel: listener -> parser -> writer, plus a driven port."""
    return {
        "version": "1.0",
        "name": "Admissions",
        "channelName": "Admissions",
        "channelId": CHANNEL_ID,
        "maxRetries": 3,
        "errorDestinationId": None,
        "nodes": [
            {"id": "src", "type": "httpListener", "position": {"x": 0, "y": 0}, "data": {"label": "In", "port": 8080, "path": "/"}},
            {"id": "port", "type": "portNode", "position": {"x": 0, "y": 100}, "data": {"label": "Port", "port": 6661}},
            {"id": "hl7", "type": "hl7Parser", "position": {"x": 200, "y": 0}, "data": {"label": "Parse"}},
            {
                "id": "out",
                "type": "httpSender",
                "position": {"x": 400, "y": 0},
                "data": {"label": "Out", "url": "https://x.example", "password": "hunter2"},
            },
        ],
        "edges": [
            {"id": "e1", "source": "src", "target": "hl7"},
            {"id": "e2", "source": "hl7", "target": "out"},
            {"id": "e3", "source": "port", "target": "src", "targetHandle": "config-port"},
        ],
        "exportedAt": "2026-01-01T00:00:00Z",
    }


@pytest.fixture
def channel_file(tmp_path: Path) -> Path:
    path = tmp_path / "admissions.json"
    path.write_text(json.dumps(channel_payload()))
    return path


@pytest.fixture
def invalid_channel_file(tmp_path: Path) -> Path:
    """A channel with a destination wired into a processor."""
    payload = channel_payload()
    payload["nodes"].append({"id": "dst2", "type": "fileWriter", "position": {"x": 0, "y": 300}, "data": {"label": "Disk"}})
    payload["nodes"].append({"id": "lua", "type": "luaScript", "position": {"x": 200, "y": 300}, "data": {"label": "Lua"}})
    payload["edges"].append({"id": "bad", "source": "dst2", "target": "lua"})
    path = tmp_path / "invalid.json"
    path.write_text(json.dumps(payload))
    return path
