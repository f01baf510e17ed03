"""
Layout server tests: REST endpoints and the WebSocket animation stream.
"""

import pytest
from fastapi.testclient import TestClient

import server


DOCUMENT = "(gender Chandler M)\n(age Chandler 30)"


@pytest.fixture
def client():
    with TestClient(server.app) as client:
        yield client


@pytest.fixture
def loaded(client):
    response = client.post("/api/parse", json={"text": DOCUMENT})
    assert response.status_code == 200
    return client


class TestParseEndpoint:
    """Tests for /api/parse and /api/validate."""

    def test_parse_returns_graph(self, client):
        data = client.post("/api/parse", json={"text": DOCUMENT}).json()

        assert sorted(n["id"] for n in data["nodes"]) == ["30", "chandler", "m"]
        assert len(data["edges"]) == 2
        assert data["errors"] == []
        assert data["metadata"]["node_count"] == 3
        assert data["layout_state"]["is_animating"] is False

    def test_parse_applies_auto_layout(self, client):
        data = client.post("/api/parse", json={"text": DOCUMENT}).json()
        positions = {n["id"]: n["position"] for n in data["nodes"]}

        assert positions["chandler"]["y"] < positions["m"]["y"]
        assert positions["m"]["y"] == pytest.approx(positions["30"]["y"])

    def test_parse_includes_legend(self, client):
        data = client.post("/api/parse", json={"text": DOCUMENT}).json()
        legend = data["legend"]

        assert [e["label"] for e in legend["predicates"]] == ["age", "gender"]
        assert {t["type"]: t["count"] for t in legend["node_types"]} == {"entity": 1, "value": 2}

    def test_parse_reports_errors(self, client):
        data = client.post("/api/parse", json={"text": "(gender Chandler M\n(age Chandler 30)"}).json()

        assert len(data["errors"]) == 1
        assert data["errors"][0]["severity"] == "error"
        assert data["errors"][0]["line"] == 1
        assert sorted(n["id"] for n in data["nodes"]) == ["30", "chandler"]

    def test_empty_text_clears_graph(self, loaded):
        data = loaded.post("/api/parse", json={"text": "   "}).json()
        assert data["nodes"] == []
        assert data["errors"] == []

    def test_parser_fault_becomes_single_error(self, client, monkeypatch):
        def boom(text):
            raise RuntimeError("boom")

        monkeypatch.setattr(server.session.parser, "parse", boom)
        data = client.post("/api/parse", json={"text": DOCUMENT}).json()

        assert data["nodes"] == []
        assert data["errors"] == [{
            "line": 1,
            "column": 1,
            "message": "Failed to parse Metta text",
            "severity": "error",
        }]

    def test_validate_only(self, client):
        data = client.post("/api/validate", json={"text": "(gender Chandler M)) extra"}).json()
        assert data["is_valid"] is False
        assert data["errors"][0]["line"] == 1


class TestLayoutEndpoints:
    """Tests for layout, drag and hit testing."""

    def test_layout_settles(self, loaded):
        data = loaded.post("/api/layout", json={"algorithm": "circular"}).json()

        assert data["layout_state"]["algorithm"] == "circular"
        assert data["layout_state"]["is_animating"] is False
        assert data["layout_state"]["progress"] == 1.0

    def test_unknown_algorithm_is_400(self, loaded):
        response = loaded.post("/api/layout", json={"algorithm": "spiral"})
        assert response.status_code == 400
        assert "spiral" in response.json()["detail"]

    def test_invalid_options_are_422(self, loaded):
        response = loaded.post("/api/layout", json={"algorithm": "circular", "options": {"damping": 5}})
        assert response.status_code == 422

    def test_layout_state(self, loaded):
        state = loaded.get("/api/layout/state").json()
        assert state["is_animating"] is False

        state = loaded.post("/api/layout/stop").json()
        assert state["is_animating"] is False

    def test_drag_and_hit_test(self, loaded):
        node = loaded.post("/api/nodes/m/drag", json={"x": 1000, "y": 1000}).json()
        assert node["position"] == {"x": 1000.0, "y": 1000.0}

        hit = loaded.post("/api/hit-test", json={
            "position": {"x": 2010, "y": 2005},
            "transform": {"x": 10, "y": 5, "scale": 2},
        }).json()
        assert hit["node"]["id"] == "m"
        assert hit["screen_position"] == {"x": 2010.0, "y": 2005.0}

        miss = loaded.post("/api/hit-test", json={"position": {"x": -5000, "y": -5000}}).json()
        assert miss == {"node": None, "screen_position": None}

    def test_drag_unknown_node_is_404(self, loaded):
        response = loaded.post("/api/nodes/nobody/drag", json={"x": 0, "y": 0})
        assert response.status_code == 404

    def test_config(self, client):
        config = client.get("/api/config").json()
        assert config["layout_algorithms"] == ["force-directed", "hierarchical", "circular"]
        assert config["layout_defaults"]["iterations"] == 300
        assert "gender" in config["common_predicates"]


class TestWebSocket:
    """Tests for the animation stream."""

    def test_connect_sends_current_graph(self, loaded):
        with loaded.websocket_connect("/ws") as ws:
            message = ws.receive_json()
            assert message["type"] == "connected"
            assert len(message["nodes"]) == 3

    def test_layout_streams_frames_until_complete(self, loaded):
        with loaded.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"action": "layout", "algorithm": "circular", "options": {"animation_duration": 0}})

            started = ws.receive_json()
            assert started["type"] == "layout_started"
            assert set(started["targets"]) == {"chandler", "m", "30"}
            assert started["layout_state"]["is_animating"] is True

            frame = ws.receive_json()
            assert frame["type"] == "layout_frame"
            assert set(frame["positions"]) == {"chandler", "m", "30"}

            complete = ws.receive_json()
            assert complete["type"] == "layout_complete"
            assert complete["layout_state"]["progress"] == 1.0

    def test_bad_layout_request_reports_error(self, loaded):
        with loaded.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"action": "layout", "algorithm": "spiral"})
            assert ws.receive_json()["type"] == "error"

    def test_unknown_action(self, loaded):
        with loaded.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"action": "dance"})
            message = ws.receive_json()
            assert message["type"] == "error"
            assert "dance" in message["message"]

    def test_malformed_frames_get_error_replies(self, loaded):
        with loaded.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text("{not json")
            assert ws.receive_json() == {"type": "error", "message": "Message is not valid JSON"}

            ws.send_json(["layout"])
            assert ws.receive_json() == {"type": "error", "message": "Message must be a JSON object"}

            # socket is still usable
            ws.send_json({"action": "dance"})
            assert ws.receive_json()["type"] == "error"

        assert server.manager.active_connections == []

    def test_stop_cancels_running_animation(self, loaded):
        with loaded.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"action": "layout", "algorithm": "circular", "options": {"animation_duration": 60000}})
            assert ws.receive_json()["type"] == "layout_started"

            ws.send_json({"action": "stop"})
            message = ws.receive_json()
            while message["type"] == "layout_frame":
                message = ws.receive_json()

            assert message["type"] == "layout_stopped"
            assert message["layout_state"]["is_animating"] is False
            assert server.animation_task is None
