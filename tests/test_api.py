"""Tests for the HTTP and WebSocket interface."""

import pytest
from fastapi.testclient import TestClient
from shapely.geometry import box

from py_cellgroups.api.main import create_app
from py_cellgroups.config import Settings
from py_cellgroups.core.occupancy import OccupancyManager


@pytest.fixture
def app_settings(tmp_path):
    static_dir = tmp_path / "static"
    static_dir.mkdir()
    (static_dir / "index.html").write_text("<html><body>celdas</body></html>")
    return Settings(
        data_dir=tmp_path / "missing-data",
        extract_dir=tmp_path / "extract",
        static_dir=static_dir,
        log_format="plain",
    )


@pytest.fixture
def loaded_manager(scenario_records):
    manager = OccupancyManager()
    manager.load(scenario_records)
    return manager


@pytest.fixture
def client(app_settings, loaded_manager):
    with TestClient(create_app(app_settings, loaded_manager)) as test_client:
        yield test_client


@pytest.fixture
def unloaded_client(app_settings):
    with TestClient(create_app(app_settings)) as test_client:
        yield test_client


class TestHttpEndpoints:
    """Test the REST surface."""

    def test_health(self, client):
        """Health reports the loaded dataset."""
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "loaded": True, "cells": 3, "connections": 0}

    def test_health_unloaded(self, unloaded_client):
        """A failed load leaves the service up but unloaded."""
        response = unloaded_client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["loaded"] is False

    def test_health_counts_connections(self, client):
        """Open websocket connections are counted."""
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            assert client.get("/api/health").json()["connections"] == 1

    def test_state(self, client):
        """State uses the wire field names."""
        response = client.get("/api/state")
        assert response.json() == {
            "todas": ["A", "B", "C"],
            "ocupadas": [],
            "libres": ["A", "B", "C"],
        }

    def test_update_occupied(self, client):
        """Posting occupied cells returns the areas."""
        response = client.post("/api/cells/occupied", json={"occupied": ["A"]})
        assert response.status_code == 200
        assert response.json() == [
            {"NombreArea": "509188", "Referencia": "B", "Celdas": ["B"]},
            {"NombreArea": "509188", "Referencia": "C", "Celdas": ["C"]},
        ]
        assert client.get("/api/state").json()["ocupadas"] == ["A"]

    def test_update_with_scalar(self, client):
        """A scalar occupied value frees every cell."""
        response = client.post("/api/cells/occupied", json={"occupied": 42})
        assert response.status_code == 200
        assert response.json()[0]["Celdas"] == ["A, B"]

    def test_update_before_load(self, unloaded_client):
        """Updates fail with 503 until the dataset is loaded."""
        response = unloaded_client.post("/api/cells/occupied", json={"occupied": []})
        assert response.status_code == 503
        assert unloaded_client.get("/api/state").json()["todas"] == []

    def test_groups(self, client):
        """Current groups can be read without updating."""
        response = client.get("/api/groups")
        assert [area["Referencia"] for area in response.json()] == ["A", "C"]

    def test_groups_before_load(self, unloaded_client):
        assert unloaded_client.get("/api/groups").status_code == 503

    def test_static_index(self, client):
        """The static directory is served at the root."""
        response = client.get("/")
        assert response.status_code == 200
        assert "celdas" in response.text


class TestWebSocket:
    """Test the push channel."""

    def test_state_on_connect(self, client):
        """A new connection immediately receives the current state."""
        with client.websocket_connect("/ws") as ws:
            message = ws.receive_json()
        assert message["event"] == "actualizacion-celdas"
        assert message["data"]["libres"] == ["A", "B", "C"]

    def test_update_round_trip(self, client):
        """The requester gets the broadcast state, then its areas."""
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"event": "actualizar-celdas", "data": ["A"]})

            state = ws.receive_json()
            areas = ws.receive_json()

        assert state == {
            "event": "actualizacion-celdas",
            "data": {"todas": ["A", "B", "C"], "ocupadas": ["A"], "libres": ["B", "C"]},
        }
        assert areas["event"] == "areas-actualizadas"
        assert [area["Referencia"] for area in areas["data"]] == ["B", "C"]

    def test_broadcast_reaches_other_connections(self, client):
        """Other connections get the state but not the requester's areas."""
        with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
            first.receive_json()
            second.receive_json()

            first.send_json({"event": "actualizar-celdas", "data": ["C"]})
            assert first.receive_json()["event"] == "actualizacion-celdas"
            assert first.receive_json()["event"] == "areas-actualizadas"

            broadcast = second.receive_json()
            assert broadcast["event"] == "actualizacion-celdas"
            assert broadcast["data"]["ocupadas"] == ["C"]

            # the next thing the second client sees is the reply to its own frame
            second.send_text("not json")
            assert second.receive_json()["event"] == "error"

    def test_update_before_load(self, unloaded_client):
        """The requester alone gets an error event."""
        with unloaded_client.websocket_connect("/ws") as ws:
            initial = ws.receive_json()
            ws.send_json({"event": "actualizar-celdas", "data": []})
            error = ws.receive_json()

        assert initial["data"] == {"todas": [], "ocupadas": [], "libres": []}
        assert error == {"event": "error", "data": {"message": "Geometry dataset not loaded"}}

    def test_invalid_frames(self, client):
        """Bad JSON and unknown events are reported and the socket stays open."""
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text("{broken")
            assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid JSON message"}}

            ws.send_json({"event": "something-else"})
            assert ws.receive_json()["data"]["message"] == "Unknown event: something-else"

            ws.send_json({"event": "actualizar-celdas", "data": []})
            assert ws.receive_json()["event"] == "actualizacion-celdas"

    def test_binary_update_frame(self, client):
        """UTF-8 binary frames are handled like text frames."""
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_bytes(b'{"event": "actualizar-celdas", "data": ["B"]}')

            state = ws.receive_json()
            areas = ws.receive_json()

        assert state["data"]["ocupadas"] == ["B"]
        assert areas["event"] == "areas-actualizadas"

    def test_undecodable_binary_frame(self, client):
        """A binary frame that is not UTF-8 is reported and the socket stays open."""
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_bytes(b"\xff\xfe\x00")
            assert ws.receive_json() == {"event": "error", "data": {"message": "Binary frame is not UTF-8 text"}}

            ws.send_json({"event": "actualizar-celdas", "data": []})
            assert ws.receive_json()["event"] == "actualizacion-celdas"


class TestStartup:
    """Test dataset loading at startup."""

    def test_unusable_extract_dir(self, tmp_path, app_settings, write_dataset_zip):
        """The service still starts, unloaded, when extraction cannot happen."""
        write_dataset_zip(["A"], [box(0, 0, 1, 1)])
        extract_dir = tmp_path / "extract-file"
        extract_dir.write_text("not a directory")
        settings = app_settings.model_copy(update={"data_dir": tmp_path / "data", "extract_dir": extract_dir})

        with TestClient(create_app(settings)) as test_client:
            response = test_client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["loaded"] is False
