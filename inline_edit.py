from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, FrozenSet

import requests

from errors import AppError

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("description", "status", "priority", "dueDate")

NETWORK_ERROR_MESSAGE = "Network error, please try again"
UPDATE_FAILED_MESSAGE = "Update failed, please try again later"


@dataclass(frozen=True)
class EditState:
    editing_row_key: str | None = None
    editing_field: str | None = None
    editing_value: Any = None
    initial_value: Any = None
    loading_row_keys: FrozenSet[str] = frozenset()

    @property
    def phase(self) -> str:
        if self.loading_row_keys:
            return "committing"
        if self.editing_row_key is not None:
            return "editing"
        return "idle"

    def is_editing(self, row_key: str, field: str) -> bool:
        return self.editing_row_key == row_key and self.editing_field == field

    def is_loading(self, row_key: str) -> bool:
        return row_key in self.loading_row_keys


def start_editing(state: EditState, row_key: str, field: str, value: Any) -> EditState:
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"{field} is not editable inline")
    # one edit target across the table; nothing new opens while a save is pending
    if state.phase == "committing":
        return state
    return EditState(
        editing_row_key=row_key,
        editing_field=field,
        editing_value=value,
        initial_value=value,
    )


def update_value(state: EditState, value: Any) -> EditState:
    if state.phase != "editing":
        return state
    return replace(state, editing_value=value)


def cancel_editing(state: EditState) -> EditState:
    if state.phase != "editing":
        return state
    return EditState()


def begin_commit(state: EditState) -> EditState:
    if state.phase != "editing":
        return state
    if state.editing_value == state.initial_value:
        return EditState()
    return replace(state, loading_row_keys=state.loading_row_keys | {state.editing_row_key})


def finish_commit(state: EditState, row_key: str) -> EditState:
    return EditState(loading_row_keys=state.loading_row_keys - {row_key})


def build_patch(field: str, value: Any, updated_at: str | None = None) -> Dict[str, Any]:
    if field == "dueDate":
        patch: Dict[str, Any] = {"dueDate": value if isinstance(value, str) and value else None}
    elif field == "description":
        patch = {"description": "" if value is None else value}
    else:
        patch = {field: value}
    if updated_at:
        patch["updatedAt"] = updated_at
    return patch


class InlineEditor:
    """Runs the edit state machine against a ``commit(row_key, patch)`` callable.

    Every transition is pushed to ``on_change``. A successful save calls
    ``on_success`` so the list can be reloaded; a failed one reports through
    ``on_error`` and leaves the cell showing its old value.
    """

    def __init__(
        self,
        commit: Callable[[str, Dict[str, Any]], Any],
        state: EditState | None = None,
        on_change: Callable[[EditState], None] | None = None,
        on_success: Callable[[], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self._commit = commit
        self._state = state or EditState()
        self.on_change = on_change
        self.on_success = on_success
        self.on_error = on_error

    @property
    def state(self) -> EditState:
        return self._state

    def _set(self, state: EditState) -> None:
        if state is self._state:
            return
        self._state = state
        if self.on_change is not None:
            self.on_change(state)

    def start(self, row_key: str, field: str, value: Any) -> None:
        self._set(start_editing(self._state, row_key, field, value))

    def change(self, value: Any) -> None:
        self._set(update_value(self._state, value))

    def cancel(self) -> None:
        self._set(cancel_editing(self._state))

    def _fail(self, row_key: str, message: str) -> bool:
        self._set(finish_commit(self._state, row_key))
        if self.on_error is not None:
            self.on_error(message)
        return False

    def commit(self, updated_at: str | None = None) -> bool:
        editing = self._state
        committing = begin_commit(editing)
        self._set(committing)
        if committing.phase != "committing":
            return False

        row_key = editing.editing_row_key
        field = editing.editing_field
        patch = build_patch(field, editing.editing_value, updated_at)
        try:
            self._commit(row_key, patch)
        except requests.RequestException:
            logger.warning("Network error while saving %s of task %s", field, row_key, exc_info=True)
            return self._fail(row_key, NETWORK_ERROR_MESSAGE)
        except AppError as exc:
            logger.info("Saving %s of task %s rejected: %s", field, row_key, exc.message)
            return self._fail(row_key, exc.message or UPDATE_FAILED_MESSAGE)
        except Exception:
            logger.exception("Saving %s of task %s failed", field, row_key)
            return self._fail(row_key, UPDATE_FAILED_MESSAGE)

        self._set(finish_commit(self._state, row_key))
        if self.on_success is not None:
            self.on_success()
        return True
