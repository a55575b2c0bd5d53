"""Schedule CRUD for one device, each change followed by a full list refresh."""

import logging
import threading

from runtime.defaults import DEFAULT_SCHEDULE_TIMEZONE_NAME
from scheduling.model import (
    actuator_keys_for_device,
    schedule_id,
    schedule_payload_from_form,
    timezone_default_for_device,
    validate_schedule_form,
)
from thingsstring_api import ThingsStringAPIError


def default_schedule_view_state():
    return {
        "device": None,
        "schedules": [],
        "loading": False,
        "message": "",
        "error": "",
    }


class ScheduleService:
    """Holds the schedules screen state for one device."""

    def __init__(self, api, device_id, *, timezone_fallback=DEFAULT_SCHEDULE_TIMEZONE_NAME):
        self.api = api
        self.device_id = device_id
        self.timezone_fallback = timezone_fallback
        self._lock = threading.Lock()
        self._state = default_schedule_view_state()

    def snapshot(self):
        with self._lock:
            return dict(self._state, schedules=list(self._state["schedules"]))

    def _update(self, **updates):
        with self._lock:
            self._state.update(updates)

    @property
    def actuator_keys(self):
        with self._lock:
            return actuator_keys_for_device(self._state["device"])

    @property
    def timezone_default(self):
        with self._lock:
            return timezone_default_for_device(self._state["device"], self.timezone_fallback)

    def refresh(self, *, keep_message=False):
        """Reload the device and its schedules; failures land in `error`."""
        updates = {"loading": True, "error": ""}
        if not keep_message:
            updates["message"] = ""
        self._update(**updates)
        try:
            device = self.api.get_device(self.device_id)
            schedules = self.api.list_schedules(self.device_id)
        except ThingsStringAPIError as exc:
            logging.error("Schedules: refresh failed for %s: %s", self.device_id, exc)
            self._update(loading=False, error=str(exc) or "Failed to load schedules")
            return False
        self._update(device=device, schedules=schedules, loading=False)
        return True

    def save(self, form, editing_id=None):
        """Validate, create or update, then refresh the list."""
        self._update(message="", error="")
        verdict = validate_schedule_form(form, known_actuators=self.actuator_keys or None)
        if "error" in verdict:
            self._update(error=verdict["error"])
            return verdict

        payload = schedule_payload_from_form(form, self.timezone_default)
        try:
            if editing_id:
                self.api.update_schedule(editing_id, payload)
                message = "Schedule updated"
            else:
                self.api.create_schedule(self.device_id, payload)
                message = "Schedule created"
        except ThingsStringAPIError as exc:
            logging.error("Schedules: save failed for %s: %s", self.device_id, exc)
            self._update(error=str(exc) or "Save failed")
            return {"error": str(exc) or "Save failed"}

        logging.info("Schedules: %s '%s' for %s", message.lower(), payload["name"], self.device_id)
        self._update(message=message)
        self.refresh(keep_message=True)
        return {"ok": True, "message": message}

    def delete(self, target_id):
        if not target_id:
            return {"error": "Missing schedule id"}
        self._update(message="", error="")
        try:
            self.api.delete_schedule(target_id)
        except ThingsStringAPIError as exc:
            logging.error("Schedules: delete %s failed: %s", target_id, exc)
            self._update(error=str(exc) or "Delete failed")
            return {"error": str(exc) or "Delete failed"}
        logging.info("Schedules: deleted %s", target_id)
        self._update(message="Deleted")
        self.refresh(keep_message=True)
        return {"ok": True, "message": "Deleted"}

    def toggle_enabled(self, schedule):
        target_id = schedule_id(schedule)
        if not target_id:
            return {"error": "Missing schedule id"}
        self._update(message="", error="")
        enabled = not bool(schedule.get("enabled"))
        try:
            self.api.update_schedule(target_id, {"enabled": enabled})
        except ThingsStringAPIError as exc:
            logging.error("Schedules: enable toggle for %s failed: %s", target_id, exc)
            self._update(error=str(exc) or "Update failed")
            return {"error": str(exc) or "Update failed"}
        self.refresh()
        return {"ok": True, "enabled": enabled}

    def find(self, target_id):
        with self._lock:
            for schedule in self._state["schedules"]:
                if schedule_id(schedule) == target_id:
                    return dict(schedule)
        return None
