from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from errors import (
    Conflict,
    InternalError,
    InvalidDueDate,
    InvalidPriority,
    InvalidStatus,
    InvalidType,
    NotFound,
    ValidationError,
)
from session_guard import Principal, parse_iso_timestamp, utcnow
from task_store import SORTABLE_COLUMNS

logger = logging.getLogger(__name__)

PRIORITIES = ["low", "medium", "high", "urgent"]
STATUSES = ["pending", "in_progress", "completed", "cancelled"]
DEFAULT_PRIORITY = "medium"
DEFAULT_STATUS = "pending"

STATUS_RANK = {"pending": 1, "in_progress": 2, "completed": 3, "cancelled": 4}
UNKNOWN_STATUS_RANK = 999

# Sorting on these needs domain rules instead of the store's ORDER BY.
CUSTOM_SORT_FIELDS = {"status", "dueDate", "createdAt"}

SORT_DIRECTIONS = {
    "asc": False,
    "ascend": False,
    "ascending": False,
    "desc": True,
    "descend": True,
    "descending": True,
}


@dataclass(frozen=True)
class TaskFilters:
    priorities: Tuple[str, ...] = ()
    statuses: Tuple[str, ...] = ()
    title: str = ""


@dataclass(frozen=True)
class TaskSort:
    field: str | None = None
    descending: bool = False

    @property
    def is_native(self) -> bool:
        return self.field is not None and self.field not in CUSTOM_SORT_FIELDS


@dataclass
class TaskSummary:
    total: int = 0
    by_status: Dict[str, int] = field(default_factory=lambda: {status: 0 for status in STATUSES})
    by_priority: Dict[str, int] = field(default_factory=lambda: {priority: 0 for priority in PRIORITIES})
    overdue: int = 0

    @property
    def completion_rate(self) -> float:
        if not self.total:
            return 0.0
        return round(self.by_status.get("completed", 0) / self.total * 100, 1)

    def to_json(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "byStatus": dict(self.by_status),
            "byPriority": dict(self.by_priority),
            "inProgress": self.by_status.get("in_progress", 0),
            "completed": self.by_status.get("completed", 0),
            "completionRate": self.completion_rate,
            "overdue": self.overdue,
        }


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def task_to_json(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "title": row["title"],
        "description": row.get("description") or "",
        "priority": row.get("priority") or DEFAULT_PRIORITY,
        "status": row.get("status") or DEFAULT_STATUS,
        "dueDate": to_iso(row.get("due_date")),
        "creatorId": row["creator_id"],
        "createdAt": to_iso(row.get("created_at")),
        "updatedAt": to_iso(row.get("updated_at")),
        "creator": {
            "id": row["creator_id"],
            "name": row.get("creator_name"),
            "email": row.get("creator_email"),
        },
    }


def _multi_values(args: Any, name: str) -> Tuple[str, ...]:
    if hasattr(args, "getlist"):
        raw = args.getlist(name)
    else:
        value = args.get(name)
        if value is None:
            raw = []
        elif isinstance(value, (list, tuple, set)):
            raw = list(value)
        else:
            raw = [value]

    values: List[str] = []
    for item in raw:
        for part in str(item).split(","):
            part = part.strip()
            if part and part not in values:
                values.append(part)
    return tuple(values)


def parse_filters(args: Any) -> TaskFilters:
    title = args.get("title") or ""
    return TaskFilters(
        priorities=_multi_values(args, "priority"),
        statuses=_multi_values(args, "status"),
        title=str(title),
    )


def parse_sort(args: Any) -> TaskSort:
    sort_by = str(args.get("sortBy") or "").strip()
    sort_order = str(args.get("sortOrder") or "").strip().lower()
    if not sort_by:
        return TaskSort()
    if sort_by not in SORTABLE_COLUMNS:
        raise ValidationError(f"Cannot sort tasks by '{sort_by}'")
    if sort_order and sort_order not in SORT_DIRECTIONS:
        raise ValidationError(f"Unknown sort order '{sort_order}'")
    return TaskSort(field=sort_by, descending=SORT_DIRECTIONS.get(sort_order, False))


def status_rank(row: Dict[str, Any]) -> int:
    return STATUS_RANK.get(str(row.get("status") or ""), UNKNOWN_STATUS_RANK)


def _created_at(row: Dict[str, Any]) -> datetime:
    return row["created_at"]


def order_tasks(rows: List[Dict[str, Any]], sort: TaskSort) -> List[Dict[str, Any]]:
    """Apply the ordering rules that the store's plain ORDER BY gets wrong.

    Status sorts by workflow rank rather than alphabetically, newest first
    within a rank. Tasks without a due date trail the dated ones whichever
    direction is asked for. Sorting relies on ``list.sort`` being stable.
    """
    ordered = list(rows)
    if sort.field is None:
        ordered.sort(key=_created_at, reverse=True)
        ordered.sort(key=status_rank)
    elif sort.field == "status":
        ordered.sort(key=_created_at, reverse=True)
        ordered.sort(key=status_rank, reverse=sort.descending)
    elif sort.field == "dueDate":
        dated = [row for row in ordered if row.get("due_date") is not None]
        undated = [row for row in ordered if row.get("due_date") is None]
        dated.sort(key=lambda row: row["due_date"], reverse=sort.descending)
        ordered = dated + undated
    elif sort.field == "createdAt":
        ordered.sort(key=_created_at, reverse=sort.descending)
    else:
        raise ValueError(f"{sort.field} is ordered by the store")
    return ordered


def list_tasks(
    store,
    principal: Principal,
    filters: TaskFilters | None = None,
    sort: TaskSort | None = None,
) -> List[Dict[str, Any]]:
    filters = filters or TaskFilters()
    sort = sort or TaskSort()

    if sort.is_native:
        rows = store.select_tasks(
            principal.user_id,
            priorities=filters.priorities,
            statuses=filters.statuses,
            title_contains=filters.title or None,
            order_column=SORTABLE_COLUMNS[sort.field],
            descending=sort.descending,
        )
    else:
        rows = store.select_tasks(
            principal.user_id,
            priorities=filters.priorities,
            statuses=filters.statuses,
            title_contains=filters.title or None,
        )
        rows = order_tasks(rows, sort)
    return [task_to_json(row) for row in rows]


def filter_rows(rows: List[Dict[str, Any]], filters: TaskFilters) -> List[Dict[str, Any]]:
    """Same matching as the store's WHERE clause, for rows already fetched."""
    matched = []
    for row in rows:
        if filters.priorities and row.get("priority") not in filters.priorities:
            continue
        if filters.statuses and row.get("status") not in filters.statuses:
            continue
        if filters.title and filters.title not in (row.get("title") or ""):
            continue
        matched.append(row)
    return matched


def _native_order(rows: List[Dict[str, Any]], column: str, descending: bool) -> List[Dict[str, Any]]:
    # NULLS LAST with id as the final tie-break, like the store's ORDER BY
    present = sorted((row for row in rows if row.get(column) is not None), key=lambda row: row["id"])
    missing = sorted((row for row in rows if row.get(column) is None), key=lambda row: row["id"])
    present.sort(key=lambda row: row[column], reverse=descending)
    return present + missing


def list_board(
    store,
    principal: Principal,
    filters: TaskFilters | None = None,
    sort: TaskSort | None = None,
) -> Tuple[List[Dict[str, Any]], TaskSummary]:
    """One fetch of the caller's tasks: the filtered view plus the summary of all of them."""
    filters = filters or TaskFilters()
    sort = sort or TaskSort()

    rows = store.select_tasks(principal.user_id)
    summary = summarize_tasks([task_to_json(row) for row in rows])

    view = filter_rows(rows, filters)
    if sort.is_native:
        view = _native_order(view, SORTABLE_COLUMNS[sort.field], sort.descending)
    else:
        view = order_tasks(view, sort)
    return [task_to_json(row) for row in view], summary


def summarize_tasks(tasks: List[Dict[str, Any]], now: datetime | None = None) -> TaskSummary:
    now = now or utcnow()
    summary = TaskSummary()
    for task in tasks:
        summary.total += 1
        status = task.get("status")
        priority = task.get("priority")
        summary.by_status[status] = summary.by_status.get(status, 0) + 1
        summary.by_priority[priority] = summary.by_priority.get(priority, 0) + 1
        due = parse_iso_timestamp(task.get("dueDate"))
        if due is not None and due < now and status not in {"completed", "cancelled"}:
            summary.overdue += 1
    return summary


def parse_due_date(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise InvalidType("Due date must be an ISO 8601 string")
    parsed = parse_iso_timestamp(value)
    if parsed is None:
        raise ValidationError(f"Invalid due date '{value}'")
    return parsed


def _require_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body")
    return payload


def _checked_priority(value: Any) -> str:
    if value not in PRIORITIES:
        raise InvalidPriority()
    return value


def _checked_status(value: Any) -> str:
    if value not in STATUSES:
        raise InvalidStatus()
    return value


def create_task(store, principal: Principal, payload: Any) -> Dict[str, Any]:
    payload = _require_object(payload)

    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Task title is required")

    description = payload.get("description")
    if description is None:
        description = ""
    elif not isinstance(description, str):
        raise InvalidType("Description must be a string")

    values = {
        "title": title.strip(),
        "description": description,
        "priority": _checked_priority(payload.get("priority") or DEFAULT_PRIORITY),
        "status": _checked_status(payload.get("status") or DEFAULT_STATUS),
        # createdAt is assigned by the store in the same write, so no ordering check here
        "due_date": parse_due_date(payload.get("dueDate")),
        "creator_id": principal.user_id,
    }
    task_id = store.insert_task(values)
    row = store.get_task(task_id, principal.user_id)
    if row is None:
        raise InternalError("Task was created but could not be loaded")
    logger.info("Created task %s for user %s", task_id, principal.user_id)
    return task_to_json(row)


def update_task(store, principal: Principal, task_id: str, patch: Any, partial: bool = True) -> Dict[str, Any]:
    """Apply ``patch`` to one of the caller's tasks.

    PUT and PATCH share this path: fields missing from the body are left
    untouched either way. ``updatedAt`` in the body, when present, must match
    the stored value or the write is refused with ``Conflict``.
    """
    patch = _require_object(patch)

    existing = store.get_task(task_id, principal.user_id)
    if existing is None:
        raise NotFound()

    values: Dict[str, Any] = {}
    if patch.get("status") is not None:
        values["status"] = _checked_status(patch["status"])
    if patch.get("priority") is not None:
        values["priority"] = _checked_priority(patch["priority"])
    if "description" in patch:
        if not isinstance(patch["description"], str):
            raise InvalidType("Description must be a string")
        values["description"] = patch["description"]
    if "dueDate" in patch:
        due_date = parse_due_date(patch["dueDate"])
        if due_date is not None and due_date <= existing["created_at"]:
            raise InvalidDueDate()
        values["due_date"] = due_date

    expected_updated_at = None
    if patch.get("updatedAt") is not None:
        expected_updated_at = parse_iso_timestamp(patch["updatedAt"])
        if expected_updated_at is None:
            raise ValidationError("updatedAt must be an ISO 8601 timestamp")
        if expected_updated_at != existing["updated_at"]:
            raise Conflict()

    if values:
        updated = store.update_task(task_id, principal.user_id, values, expected_updated_at)
        if not updated:
            # the row changed or vanished between the read and the write
            if expected_updated_at is not None:
                raise Conflict()
            raise NotFound()
        logger.info(
            "%s task %s fields=%s",
            "Patched" if partial else "Replaced",
            task_id,
            ",".join(sorted(values)),
        )

    row = store.get_task(task_id, principal.user_id)
    if row is None:
        raise NotFound()
    return task_to_json(row)


def delete_task(store, principal: Principal, task_id: str) -> Dict[str, Any]:
    if store.get_task(task_id, principal.user_id) is None:
        raise NotFound()
    if not store.delete_task(task_id, principal.user_id):
        raise NotFound()
    logger.info("Deleted task %s for user %s", task_id, principal.user_id)
    return {"message": "Task deleted", "id": task_id}
