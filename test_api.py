"""
Tests for the CSV Reconcile HTTP API.
"""

import os
import asyncio
import logging
import importlib

import pytest
from fastapi.testclient import TestClient

from conftest import write_csv, id_rows
from csv_reconcile.main import app
from csv_reconcile.core.output import OutputGenerator


@pytest.fixture
def client():
    return TestClient(app)


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "CSV Reconcile API is running!"}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_reconcile(client, dirs, tmp_path):
    left, right = dirs
    write_csv(left / "data.csv", id_rows(1, 2, 3))
    write_csv(right / "data.csv", id_rows(1, 2, 4))
    write_csv(right / "only-right.csv", id_rows(9))
    output = tmp_path / "out"

    response = client.post("/api/reconcile", json={
        "leftDir": str(left),
        "rightDir": str(right),
        "outputDir": str(output),
        "matchingRule": {"matchingFields": ["Id"]},
        "concurrency": 2,
        "tempDir": str(tmp_path / "work"),
    })

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["outputDir"] == os.path.abspath(str(output))
    assert "1 with errors" in body["message"]
    assert body["summary"]["summary"]["totalMatched"] == 2
    assert body["summary"]["missingFiles"]["missingInLeft"] == ["only-right.csv"]
    assert [p["fileName"] for p in body["pairs"]] == ["data.csv", "only-right.csv"]
    assert body["pairs"][0]["joinMode"] == "streaming"
    assert os.path.isfile(output / "data" / "matched.csv")
    assert os.path.isfile(output / "global-summary.json")


def test_reconcile_rejects_invalid_config(client, tmp_path):
    response = client.post("/api/reconcile", json={
        "leftDir": str(tmp_path / "missing"),
        "rightDir": str(tmp_path),
        "matchingRule": {"matchingFields": []},
    })

    assert response.status_code == 400
    errors = response.json()["detail"]["errors"]
    assert len(errors) == 2
    assert any("does not exist" in e for e in errors)


def test_reconcile_writes_outputs_off_the_event_loop(client, dirs, tmp_path, monkeypatch):
    left, right = dirs
    write_csv(left / "data.csv", id_rows(1, 2))
    write_csv(right / "data.csv", id_rows(2))
    original = OutputGenerator.generate_all
    calls = []

    def generate_all(self, *args, **kwargs):
        try:
            asyncio.get_running_loop()
            calls.append("event loop")
        except RuntimeError:
            calls.append("worker thread")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(OutputGenerator, "generate_all", generate_all)

    response = client.post("/api/reconcile", json={
        "leftDir": str(left),
        "rightDir": str(right),
        "outputDir": str(tmp_path / "out"),
        "matchingRule": {"matchingFields": ["Id"]},
        "tempDir": str(tmp_path / "work"),
    })

    assert response.status_code == 200, response.text
    assert calls == ["worker thread"]
    assert os.path.isfile(tmp_path / "out" / "data" / "matched.csv")


def test_entry_point_reuses_the_package_app(monkeypatch):
    import app as entry_point

    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda *args, **kwargs: calls.append(kwargs))
    entry_point = importlib.reload(entry_point)

    assert entry_point.app is app
    assert calls == []
