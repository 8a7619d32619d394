"""Tests for the browser UI service layer and API endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from gridsheet.errors import InvalidContentError, InvalidNameError, PersistenceError
from gridsheet.project import DEFAULT_CONFIG
from gridsheet.spreadsheet import Spreadsheet
from gridsheet.ui.service import (
    HELP_TEXT,
    CloseVetoedError,
    DocumentClosedError,
    SavePathRequiredError,
    SheetService,
)


@pytest.fixture
def config(tmp_path: Path) -> dict[str, Any]:
    return {**DEFAULT_CONFIG, "log_dir": str(tmp_path / "logs")}


@pytest.fixture
def saved_book(tmp_path: Path) -> Path:
    sheet = Spreadsheet()
    sheet.set_content("A1", "5")
    sheet.set_content("B1", "=A1+2")
    path = tmp_path / "book.sprd"
    sheet.save(path)
    return path


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ────────────────────────────────────────────────────────────────
# Service layer
# ────────────────────────────────────────────────────────────────


@pytest.fixture
def service(config: dict[str, Any]) -> SheetService:
    return SheetService(config=config)


class TestServiceState:
    def test_new_document_state(self, service: SheetService) -> None:
        state = service.get_state()
        assert state["size"] == {"columns": 26, "rows": 99}
        assert state["grid"] == {}
        assert state["selection"] == {"name": "A1", "value": "", "content": ""}
        assert state["saved_notice"] is False
        assert state["document"] == {"title": "Untitled", "path": None, "dirty": False, "closed": False}

    def test_open_file(self, saved_book: Path, config: dict[str, Any]) -> None:
        state = SheetService(file=saved_book, config=config).get_state()
        assert state["grid"] == {"A1": "5", "B1": "7"}
        assert state["document"]["title"] == "book.sprd"
        assert state["document"]["dirty"] is False

    def test_open_missing_file(self, tmp_path: Path, config: dict[str, Any]) -> None:
        with pytest.raises(PersistenceError):
            SheetService(file=tmp_path / "missing.sprd", config=config)

    def test_help(self, service: SheetService) -> None:
        assert service.help()["help"] == HELP_TEXT
        assert "A1-Z99" in service.help()["cell_names"]


class TestServiceCommands:
    def test_select_and_commit(self, service: SheetService) -> None:
        service.commit("5")
        service.select("B1")
        state = service.commit("=A1*2")
        assert state["display"] == "10"
        assert state["grid"] == {"A1": "5", "B1": "10"}
        assert state["selection"] == {"name": "B1", "value": "10", "content": "=A1*2"}
        assert state["document"]["dirty"] is True

    def test_select_by_coordinates(self, service: SheetService) -> None:
        assert service.select(column=6, row=21)["selection"]["name"] == "G22"

    def test_select_requires_target(self, service: SheetService) -> None:
        with pytest.raises(ValueError):
            service.select()

    def test_select_invalid(self, service: SheetService) -> None:
        with pytest.raises(InvalidNameError):
            service.select("A100")

    def test_move(self, service: SheetService) -> None:
        assert service.move("left")["moved"] is False
        state = service.move("down")
        assert state["moved"] is True
        assert state["selection"]["name"] == "A2"

    def test_rejected_commit(self, service: SheetService) -> None:
        with pytest.raises(InvalidContentError):
            service.commit("=A1+")
        assert service.get_state()["document"]["dirty"] is False


class TestServiceDocument:
    def test_save_requires_path_when_unbound(self, service: SheetService) -> None:
        service.commit("1")
        with pytest.raises(SavePathRequiredError):
            service.save()

    def test_save_then_save_again(self, service: SheetService, tmp_path: Path) -> None:
        service.commit("1")
        state = service.save(str(tmp_path / "out"))
        assert state["document"]["path"] == str(tmp_path / "out.sprd")
        assert state["document"]["dirty"] is False
        assert state["saved_notice"] is True

        service.commit("2")
        assert service.save()["document"]["dirty"] is False
        assert Spreadsheet.load(tmp_path / "out.sprd").get_value("A1") == 2.0

    def test_save_as_requires_path(self, service: SheetService) -> None:
        with pytest.raises(ValueError):
            service.save_as("")

    def test_save_to_bad_path(self, service: SheetService, tmp_path: Path) -> None:
        service.commit("1")
        with pytest.raises(PersistenceError):
            service.save(str(tmp_path / "nope" / "out.sprd"))
        state = service.get_state()
        assert state["document"]["path"] is None
        assert state["document"]["dirty"] is True

    def test_saved_notice_expires(self, config: dict[str, Any], tmp_path: Path) -> None:
        clock = FakeClock()
        service = SheetService(config=config, clock=clock)
        assert service.save(str(tmp_path / "a.sprd"))["saved_notice"] is True
        clock.now = 4.0
        assert service.get_state()["saved_notice"] is True
        clock.now = 5.0
        assert service.get_state()["saved_notice"] is False

    def test_close_clean(self, service: SheetService) -> None:
        assert service.close()["document"]["closed"] is True
        with pytest.raises(DocumentClosedError):
            service.commit("1")

    def test_close_dirty_vetoed(self, service: SheetService) -> None:
        service.commit("1")
        with pytest.raises(CloseVetoedError):
            service.close()
        with pytest.raises(CloseVetoedError):
            service.close("cancel")
        assert service.get_state()["document"]["closed"] is False

    def test_close_discard(self, service: SheetService) -> None:
        service.commit("1")
        assert service.close("discard")["document"]["closed"] is True

    def test_close_save(self, service: SheetService, tmp_path: Path) -> None:
        service.commit("1")
        state = service.close("save", str(tmp_path / "closing.sprd"))
        assert state["document"]["closed"] is True
        assert (tmp_path / "closing.sprd").exists()

    def test_new_document(self, service: SheetService) -> None:
        service.commit("1")
        service.close("discard")
        state = service.new_document()
        assert state["grid"] == {}
        assert state["document"]["closed"] is False

    def test_open_document_replaces_clean(self, service: SheetService, saved_book: Path) -> None:
        state = service.open_document(saved_book)
        assert state["grid"] == {"A1": "5", "B1": "7"}
        assert state["document"]["path"] == str(saved_book)

    def test_open_failure_keeps_current(self, service: SheetService, tmp_path: Path) -> None:
        service.commit("42")
        with pytest.raises(PersistenceError):
            service.open_document(tmp_path / "missing.sprd")
        state = service.get_state()
        assert state["grid"] == {"A1": "42"}
        assert state["document"]["dirty"] is True

    def test_open_with_unsaved_changes_vetoed(self, service: SheetService, saved_book: Path) -> None:
        service.commit("42")
        with pytest.raises(CloseVetoedError):
            service.open_document(saved_book)
        assert service.get_state()["grid"] == {"A1": "42"}
        assert service.open_document(saved_book, decision="discard")["grid"] == {"A1": "5", "B1": "7"}

    def test_events_logged(self, service: SheetService, saved_book: Path, tmp_path: Path) -> None:
        from gridsheet.logging.sink import EventSink

        service.open_document(saved_book)
        with pytest.raises(PersistenceError):
            service.open_document(tmp_path / "missing.sprd")
        types = [e["event_type"] for e in EventSink(tmp_path / "logs").read()]
        assert types[0] == "document_open_failed"
        assert "document_opened" in types

    def test_open_non_utf8_file(self, service: SheetService, tmp_path: Path) -> None:
        from gridsheet.logging.sink import EventSink

        bad = tmp_path / "bad.sprd"
        bad.write_bytes(b"version: ps6\ncells:\n  A1: '\xff\xfe'\n")
        service.commit("42")
        with pytest.raises(PersistenceError, match="not a spreadsheet file"):
            service.open_document(bad, decision="discard")
        assert service.get_state()["grid"] == {"A1": "42"}
        assert service.display.errors[-1][0] == "File Error"
        events = EventSink(tmp_path / "logs").read()
        assert events[0]["event_type"] == "document_open_failed"


# ────────────────────────────────────────────────────────────────
# API endpoints
# ────────────────────────────────────────────────────────────────


class TestAPIEndpoints:
    """Test FastAPI endpoints using TestClient."""

    @pytest.fixture
    def client(self, config: dict[str, Any]):
        from fastapi.testclient import TestClient

        from gridsheet.ui.server import create_app

        app = create_app(config=config)
        return TestClient(app)

    def test_root_returns_html(self, client) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        assert "gridsheet" in resp.text

    def test_state(self, client) -> None:
        resp = client.get("/api/state")
        assert resp.status_code == 200
        assert resp.json()["selection"]["name"] == "A1"

    def test_help(self, client) -> None:
        resp = client.get("/api/help")
        assert resp.status_code == 200
        assert "formula" in resp.json()["help"]

    def test_select_commit_move(self, client) -> None:
        assert client.post("/api/commit", json={"content": "5"}).json()["display"] == "5"
        resp = client.post("/api/select", json={"name": "B1"})
        assert resp.status_code == 200
        data = client.post("/api/commit", json={"content": "=A1+2"}).json()
        assert data["grid"] == {"A1": "5", "B1": "7"}
        data = client.post("/api/move", json={"direction": "right"}).json()
        assert data["selection"]["name"] == "C1"

    def test_invalid_name_is_400(self, client) -> None:
        resp = client.post("/api/select", json={"name": "AA1"})
        assert resp.status_code == 400
        assert resp.json()["detail"]["title"] == "Invalid Cell Name"

    def test_invalid_content_is_400_with_help(self, client) -> None:
        resp = client.post("/api/commit", json={"content": "=A100"})
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert "A1-Z99" in detail["message"]
        assert "A100" in detail["reason"]

    def test_bad_direction_is_400(self, client) -> None:
        assert client.post("/api/move", json={"direction": "diagonal"}).status_code == 400

    def test_save_flow(self, client, tmp_path: Path) -> None:
        client.post("/api/commit", json={"content": "1"})
        assert client.post("/api/save", json={}).status_code == 409
        assert client.post("/api/save-as", json={"path": ""}).status_code == 400

        resp = client.post("/api/save", json={"path": str(tmp_path / "web.sprd")})
        assert resp.status_code == 200
        assert resp.json()["document"]["dirty"] is False
        assert client.post("/api/save", json={}).status_code == 200

    def test_save_failure_is_500(self, client, tmp_path: Path) -> None:
        resp = client.post("/api/save-as", json={"path": str(tmp_path / "missing" / "x.sprd")})
        assert resp.status_code == 500
        assert resp.json()["detail"]["title"] == "File Error"

    def test_close_flow(self, client) -> None:
        client.post("/api/commit", json={"content": "1"})
        assert client.post("/api/close", json={}).status_code == 409
        assert client.post("/api/close", json={"decision": "bogus"}).status_code == 400
        resp = client.post("/api/close", json={"decision": "discard"})
        assert resp.json()["document"]["closed"] is True
        assert client.post("/api/commit", json={"content": "2"}).status_code == 409

        resp = client.post("/api/new", json={})
        assert resp.status_code == 200
        assert resp.json()["grid"] == {}

    def test_open(self, client, saved_book: Path, tmp_path: Path) -> None:
        assert client.post("/api/open", json={"file": ""}).status_code == 400
        assert client.post("/api/open", json={"file": str(tmp_path / "nope.sprd")}).status_code == 500
        bad = tmp_path / "bad.sprd"
        bad.write_bytes(b"\xff\xfe\x00")
        resp = client.post("/api/open", json={"file": str(bad)})
        assert resp.status_code == 500
        assert resp.json()["detail"]["title"] == "File Error"
        resp = client.post("/api/open", json={"file": str(saved_book)})
        assert resp.status_code == 200
        assert resp.json()["grid"]["B1"] == "7"
