# hotspot_sync/backend.py

import json
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from hotspot_sync.base_utils import BaseUtils
from hotspot_sync.errors import HotspotSyncError, ValidationError
from hotspot_sync.models import to_public
from hotspot_sync.project_service import EditorSession, ProjectService
from hotspot_sync.settings import logger


class Backend(BaseUtils):
    def __init__(self, service: Optional[ProjectService] = None):
        self.service = service if service is not None else ProjectService()

    def _process_request_data(self, request_data: dict) -> dict:
        """
        Core request handling logic.
        Takes a parsed JSON dict ({type, sender_id, payload}) and returns the
        response_data dict. Engine errors become status "error" with their code;
        anything else propagates.
        """
        request_type = request_data.get("type")
        payload = request_data.get("payload") or {}
        project_id = request_data.get("sender_id") or payload.get("project_id")
        project_id = str(project_id) if project_id else None

        try:
            preview = json.dumps(request_data, indent=2)
        except (TypeError, ValueError):
            preview = str(request_data)
        logger.debug(f"process_request request {preview}")

        response_data = {
            "status": "success",
            "message": "",
            "project_id": project_id,
        }

        try:
            # ---- projects ----
            if request_type == "list_projects":
                response_data["data"] = self.service.get_all_projects()

            elif request_type == "create_project":
                project = self.service.create_new_project(payload)
                response_data["project_id"] = project.id
                response_data["data"] = project
                response_data["message"] = "Project created."

            elif request_type == "open_project":
                bundle = self.service.open_project(self._require(project_id, "project_id"))
                self.service.open_editor_session(project_id, auto_save=payload.get("auto_save"))
                response_data["data"] = bundle

            elif request_type == "save_project":
                response_data["data"] = self.service.save_current_project(
                    self._require(project_id, "project_id"), payload.get("updates") or {}
                )
                response_data["message"] = "Project saved."

            elif request_type == "delete_project":
                self.service.delete_project(self._require(project_id, "project_id"))
                response_data["message"] = "Project deleted."

            elif request_type == "duplicate_project":
                copy = self.service.duplicate_project(self._require(project_id, "project_id"))
                response_data["data"] = copy
                response_data["message"] = f"Project duplicated as {copy.id}."

            elif request_type == "close_project":
                closed = self.service.close_editor_session(self._require(project_id, "project_id"))
                response_data["data"] = {"closed": closed}

            # ---- slides ----
            elif request_type == "create_slide":
                response_data["data"] = self.service.create_slide(
                    {**payload, "project_id": self._require(project_id, "project_id")}
                )

            elif request_type == "delete_slide":
                self.service.delete_slide(
                    self._require(payload.get("slide_id"), "slide_id"),
                    self._require(project_id, "project_id"),
                )
                response_data["message"] = "Slide deleted."

            elif request_type == "update_slide":
                response_data["data"] = self.service.update_slide(
                    self._require(payload.get("slide_id"), "slide_id"),
                    self._require(project_id, "project_id"),
                    payload.get("updates") or {},
                )

            elif request_type == "update_slide_background":
                response_data["data"] = self.service.update_slide_background(
                    self._require(payload.get("slide_id"), "slide_id"),
                    self._require(project_id, "project_id"),
                    payload.get("background_url") or "",
                    payload.get("background_type") or "image",
                )

            elif request_type == "reorder_slides":
                moved = self.service.reorder_slides(
                    self._require(project_id, "project_id"),
                    int(payload.get("from_index", -1)),
                    int(payload.get("to_index", -1)),
                )
                response_data["data"] = {"reordered": moved}

            elif request_type == "open_slide":
                session = self._session(project_id)
                session.open_slide(self._require(payload.get("slide_id"), "slide_id"))
                response_data["data"] = session.store.get_slide_hotspots(session.store.active_slide_id)

            # ---- hotspots (editor session) ----
            elif request_type == "create_hotspot":
                response_data["data"] = self._session(project_id).store.create_hotspot(payload.get("config"))

            elif request_type == "update_hotspot":
                response_data["data"] = self._session(project_id).store.update_hotspot(
                    self._require(payload.get("hotspot_id"), "hotspot_id"), payload.get("updates") or {}
                )

            elif request_type == "move_hotspot":
                response_data["data"] = self._session(project_id).store.update_hotspot_position(
                    self._require(payload.get("hotspot_id"), "hotspot_id"),
                    (float(payload.get("x", 0)), float(payload.get("y", 0))),
                )

            elif request_type == "delete_hotspot":
                self._session(project_id).store.delete_hotspot(self._require(payload.get("hotspot_id"), "hotspot_id"))
                response_data["message"] = "Hotspot deleted."

            elif request_type == "reorder_hotspot":
                moved = self._session(project_id).store.reorder_hotspot(
                    self._require(payload.get("hotspot_id"), "hotspot_id"),
                    int(payload.get("from_index", -1)),
                    int(payload.get("to_index", -1)),
                )
                response_data["data"] = {"reordered": moved}

            elif request_type == "select_hotspot":
                store = self._session(project_id).store
                store.select_hotspot(payload.get("hotspot_id"))
                response_data["data"] = store.get_selected_hotspot()

            elif request_type == "get_slide_hotspots":
                response_data["data"] = self._session(project_id).store.get_slide_hotspots(
                    self._require(payload.get("slide_id"), "slide_id")
                )

            # ---- sync ----
            elif request_type == "save_hotspots":
                policy = self._session(project_id).policy
                saved = policy.flush_all()
                response_data["data"] = policy.status()
                if not saved:
                    response_data["status"] = "error"
                    response_data["code"] = "PERSISTENCE_ERROR"
                    response_data["message"] = str(policy.last_error or "Save did not complete")
                else:
                    response_data["message"] = "All changes saved."

            elif request_type == "sync_status":
                session = self._session(project_id)
                response_data["data"] = {
                    **session.policy.status(),
                    "statistics": session.store.get_statistics(),
                    "adapter": session.adapter.get_stats(),
                }

            # ---- analytics ----
            elif request_type == "record_analytics":
                response_data["data"] = self.service.record_analytics(
                    self._require(project_id, "project_id"), payload
                )

            elif request_type == "get_analytics":
                response_data["data"] = self.service.get_analytics(
                    self._require(project_id, "project_id"),
                    start_date=self._parse_date(payload.get("start_date")),
                    end_date=self._parse_date(payload.get("end_date")),
                    limit=payload.get("limit"),
                )

            else:
                response_data["status"] = "error"
                response_data["message"] = f"Unknown request type: {request_type}"

        except HotspotSyncError as e:
            logger.info(f"{request_type} failed: [{e.code}] {e}")
            response_data["status"] = "error"
            response_data["code"] = e.code
            response_data["message"] = str(e)
            response_data.pop("data", None)

        except Exception as e:
            logger.info(f"Error while processing request data: {e}")
            traceback.print_exc()
            raise

        response_data = to_public(response_data)
        try:
            preview = json.dumps(response_data, indent=2)
        except (TypeError, ValueError):
            preview = str(response_data)
        logger.debug(f"response {preview}")

        return response_data

    # -----------------------
    # Helpers
    # -----------------------

    def _session(self, project_id: Optional[str]) -> EditorSession:
        return self.service.open_editor_session(self._require(project_id, "project_id"))

    @staticmethod
    def _require(value: Any, name: str) -> str:
        if value is None or value == "":
            raise ValidationError("Invalid request", [f"Missing '{name}' in payload"])
        return str(value)

    @staticmethod
    def _parse_date(value: Any) -> Optional[datetime]:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            raise ValidationError("Invalid request", [f"Invalid date: {value}"])
        # stored timestamps are UTC-aware
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
