"""Tests for request dispatch.

Tests cover:
- Project, slide and hotspot requests end to end over the memory row store
- Engine errors turned into status "error" responses with their code
- Unknown request types and missing identifiers
"""

from unittest.mock import patch

import pytest


def _request(backend, request_type, project_id=None, **payload):
    return backend._process_request_data({"type": request_type, "sender_id": project_id, "payload": payload})


@pytest.fixture
def project_id(backend):
    response = _request(backend, "create_project", name="Onboarding")
    assert response["status"] == "success"
    return response["project_id"]


@pytest.fixture
def slide_id(backend, project_id):
    response = _request(backend, "create_slide", project_id, title="Welcome")
    _request(backend, "open_slide", project_id, slide_id=response["data"]["id"])
    return response["data"]["id"]


class TestProjects:
    """Tests for project requests."""

    def test_create_and_list(self, backend, project_id):
        """Test a created project shows up in list_projects as plain JSON."""
        response = _request(backend, "list_projects")

        assert response["status"] == "success"
        assert [p["id"] for p in response["data"]] == [project_id]
        assert isinstance(response["data"][0]["created_at"], str)

    def test_open_project_starts_session(self, backend, service, project_id):
        """Test open_project returns the bundle and opens an editor session."""
        response = _request(backend, "open_project", project_id)

        assert response["data"]["project"]["title"] == "Onboarding"
        assert response["data"]["slides"] == []
        assert service.get_session(project_id, required=False) is not None

    def test_project_id_from_payload(self, backend, project_id):
        """Test project_id may come in the payload instead of sender_id."""
        response = _request(backend, "save_project", project_id=project_id, updates={"title": "Renamed"})
        assert response["data"]["title"] == "Renamed"

        response = backend._process_request_data(
            {"type": "open_project", "payload": {"project_id": project_id}}
        )
        assert response["project_id"] == project_id

    def test_delete_project(self, backend, project_id):
        """Test a deleted project is gone from the registry."""
        assert _request(backend, "delete_project", project_id)["status"] == "success"
        assert _request(backend, "list_projects")["data"] == []

    def test_duplicate_project(self, backend, project_id, slide_id):
        """Test duplicate returns the new project."""
        _request(backend, "create_hotspot", project_id, config={"name": "Start"})
        response = _request(backend, "duplicate_project", project_id)

        assert response["data"]["title"] == "Onboarding (Copy)"
        bundle = _request(backend, "open_project", response["data"]["id"])["data"]
        assert [h["name"] for hs in bundle["hotspots"].values() for h in hs] == ["Start"]


class TestHotspots:
    """Tests for editor-session hotspot requests."""

    def test_create_move_and_save(self, backend, service, project_id, slide_id):
        """Test a hotspot created and moved through requests is written by save_hotspots."""
        created = _request(backend, "create_hotspot", project_id, config={"name": "Start"})["data"]
        moved = _request(backend, "move_hotspot", project_id, hotspot_id=created["id"], x=25, y=75)["data"]
        assert (moved["x"], moved["y"]) == (25.0, 75.0)

        response = _request(backend, "save_hotspots", project_id)
        assert response["status"] == "success"
        assert response["data"]["has_unsaved_changes"] is False

        bundle = service.open_project(project_id)
        assert bundle["hotspots"][slide_id][0].position == (25.0, 75.0)

    def test_select_and_reorder(self, backend, project_id, slide_id):
        """Test selection and reorder responses."""
        a = _request(backend, "create_hotspot", project_id)["data"]
        b = _request(backend, "create_hotspot", project_id)["data"]

        assert _request(backend, "select_hotspot", project_id, hotspot_id=b["id"])["data"]["id"] == b["id"]
        response = _request(backend, "reorder_hotspot", project_id, hotspot_id=b["id"], from_index=1, to_index=0)
        assert response["data"] == {"reordered": True}

        listed = _request(backend, "get_slide_hotspots", project_id, slide_id=slide_id)["data"]
        assert [h["id"] for h in listed] == [b["id"], a["id"]]
        assert [h["order"] for h in listed] == [0, 1]

    def test_validation_error_response(self, backend, project_id, slide_id):
        """Test a rejected update comes back as an error with its code."""
        created = _request(backend, "create_hotspot", project_id)["data"]
        response = _request(backend, "update_hotspot", project_id, hotspot_id=created["id"], updates={"size": 5})

        assert response["status"] == "error"
        assert response["code"] == "VALIDATION_ERROR"
        assert "data" not in response

    def test_create_without_active_slide(self, backend, project_id):
        """Test creating a hotspot before any slide is open."""
        response = _request(backend, "create_hotspot", project_id)
        assert response["code"] == "NOT_INITIALIZED"

    def test_save_failure_reports_persistence_error(self, backend, service, project_id, slide_id):
        """Test a failed manual save keeps the changes and reports the failure."""
        _request(backend, "create_hotspot", project_id)
        adapter = service.get_session(project_id).adapter

        with patch.object(adapter, "save_hotspots", side_effect=RuntimeError("quota")):
            response = _request(backend, "save_hotspots", project_id)

        assert response["status"] == "error"
        assert response["code"] == "PERSISTENCE_ERROR"
        assert response["data"]["pending_changes"] == 1

    def test_sync_status(self, backend, project_id, slide_id):
        """Test sync_status reports policy state and store statistics."""
        _request(backend, "create_hotspot", project_id)
        data = _request(backend, "sync_status", project_id)["data"]

        assert data["has_unsaved_changes"] is True
        assert data["statistics"]["hotspots_in_active_slide"] == 1
        assert data["statistics"]["active_slide"] == slide_id


class TestErrors:
    """Tests for malformed requests."""

    def test_unknown_request_type(self, backend):
        """Test an unknown type is answered, not raised."""
        response = _request(backend, "launch_rocket")
        assert response["status"] == "error"
        assert response["message"] == "Unknown request type: launch_rocket"

    def test_missing_project_id(self, backend):
        """Test a project request without a project id."""
        response = _request(backend, "open_project")
        assert response["code"] == "VALIDATION_ERROR"
        assert "project_id" in response["message"]

    def test_unknown_project(self, backend):
        """Test a request for a project that does not exist."""
        response = _request(backend, "open_project", "proj_missing")
        assert response["code"] == "NOT_FOUND"

    def test_unexpected_errors_propagate(self, backend, service):
        """Test non-engine exceptions are re-raised."""
        with patch.object(service, "get_all_projects", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                _request(backend, "list_projects")

    def test_analytics_dates(self, backend, project_id):
        """Test analytics queries accept ISO dates and reject bad ones."""
        _request(backend, "record_analytics", project_id, event_type="view")

        response = _request(backend, "get_analytics", project_id, start_date="2000-01-01T00:00:00")
        assert len(response["data"]) == 1

        response = _request(backend, "get_analytics", project_id, start_date="yesterday")
        assert response["code"] == "VALIDATION_ERROR"
