from __future__ import annotations

import logging
import os
from datetime import timedelta
from typing import Any, Callable, Dict, List
from urllib.parse import parse_qs, quote

import psycopg2
from flask import Flask, jsonify, redirect, request
from reactpy import component, event, hooks, html, use_location
from reactpy.backend.flask import Options, configure, use_request
from werkzeug.exceptions import HTTPException

import accounts
from config import SESSION_COOKIE_NAME, load_dotenv
from errors import AppError, AuthError, InternalError, SessionExpired
from inline_edit import EditState, InlineEditor
from session_guard import (
    Principal,
    clear_session_cookie,
    new_session,
    parse_iso_timestamp,
    set_session_cookie,
    validate,
)
from task_service import (
    PRIORITIES,
    STATUSES,
    TaskFilters,
    TaskSort,
    create_task,
    delete_task,
    list_board,
    list_tasks,
    parse_filters,
    parse_sort,
    summarize_tasks,
    update_task,
)
from task_store import TaskStore, close_db, maybe_init_db_on_startup

load_dotenv()

app = Flask(__name__)
app.teardown_appcontext(close_db)

FORM_MIMETYPES = {"application/x-www-form-urlencoded", "multipart/form-data"}

PRIORITY_LABELS = {"low": "Low", "medium": "Medium", "high": "High", "urgent": "Urgent"}
STATUS_LABELS = {
    "pending": "Pending",
    "in_progress": "In progress",
    "completed": "Completed",
    "cancelled": "Cancelled",
}
SORT_OPTIONS = [
    {"value": "", "label": "Default (status, newest)"},
    {"value": "status", "label": "Status"},
    {"value": "dueDate", "label": "Due date"},
    {"value": "createdAt", "label": "Created"},
    {"value": "updatedAt", "label": "Updated"},
    {"value": "title", "label": "Title"},
    {"value": "priority", "label": "Priority"},
]


def get_store():
    store = app.config.get("TASK_STORE")
    if store is None:
        store = TaskStore()
    return store


def require_principal() -> Principal:
    return validate(request.cookies.get(SESSION_COOKIE_NAME))


def is_form_post() -> bool:
    return request.mimetype in FORM_MIMETYPES


@app.errorhandler(AppError)
def handle_app_error(exc: AppError):
    response = jsonify(exc.to_json())
    response.status_code = exc.status_code
    if isinstance(exc, SessionExpired):
        clear_session_cookie(response)
    return response


@app.errorhandler(psycopg2.Error)
def handle_db_error(exc: psycopg2.Error):
    app.logger.exception("Database error on %s %s", request.method, request.path)
    return jsonify(InternalError().to_json()), 500


@app.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify(InternalError().to_json()), 500


@app.route("/api/auth/login", methods=["POST"])
def api_login():
    form_post = is_form_post()
    payload = request.form.to_dict() if form_post else request.get_json(silent=True)
    try:
        principal, remember = accounts.authenticate(get_store(), payload)
    except AppError as exc:
        if form_post:
            return redirect(f"/?login_error={quote(exc.message)}")
        raise

    if form_post:
        response = redirect("/")
    else:
        response = jsonify({"message": "Login successful", "user": principal.to_json()})
    value, max_age = new_session(principal, remember)
    set_session_cookie(response, value, max_age)
    app.logger.info("User %s signed in (remember=%s)", principal.user_id, remember)
    return response


@app.route("/api/auth/logout", methods=["POST"])
def api_logout():
    response = redirect("/") if is_form_post() else jsonify({"success": True})
    clear_session_cookie(response)
    return response


@app.route("/api/auth/register", methods=["POST"])
def api_register():
    user = accounts.register_user(get_store(), request.get_json(silent=True))
    return jsonify({"message": "Registration successful", "user": user}), 201


@app.route("/api/tasks", methods=["GET", "POST"])
def api_tasks():
    principal = require_principal()
    if request.method == "GET":
        filters = parse_filters(request.args)
        sort = parse_sort(request.args)
        return jsonify(list_tasks(get_store(), principal, filters, sort))
    task = create_task(get_store(), principal, request.get_json(silent=True))
    return jsonify(task), 201


@app.route("/api/tasks/summary")
def api_task_summary():
    principal = require_principal()
    tasks = list_tasks(get_store(), principal)
    return jsonify(summarize_tasks(tasks).to_json())


@app.route("/api/tasks/<task_id>", methods=["PUT", "PATCH", "DELETE"])
def api_task_item(task_id: str):
    principal = require_principal()
    if request.method == "DELETE":
        return jsonify(delete_task(get_store(), principal, task_id))
    partial = request.method == "PATCH"
    task = update_task(get_store(), principal, task_id, request.get_json(silent=True), partial=partial)
    return jsonify(task)


@app.route("/api/users")
def api_current_user():
    principal = require_principal()
    return jsonify(accounts.current_user(get_store(), principal))


@app.route("/api/db-health")
def api_db_health():
    return jsonify({"ok": get_store().ping()})


def priority_class(value: Any) -> str:
    return {
        "urgent": "pill-danger",
        "high": "pill-warning",
        "medium": "pill-info",
        "low": "pill-success",
    }.get(str(value or ""), "pill-muted")


def task_status_class(value: Any) -> str:
    return {
        "in_progress": "pill-info",
        "completed": "pill-success",
        "cancelled": "pill-danger",
    }.get(str(value or ""), "pill-muted")


def date_part(value: Any) -> str:
    return str(value or "")[:10]


def earliest_due_date(created_at: Any) -> str:
    # the server wants dueDate strictly after createdAt and reads a bare date as midnight UTC
    created = parse_iso_timestamp(created_at)
    if created is None:
        return ""
    return (created + timedelta(days=1)).date().isoformat()


def filters_from_state(state: Dict[str, Any]) -> TaskFilters:
    return TaskFilters(
        priorities=tuple(state.get("priorities") or ()),
        statuses=tuple(state.get("statuses") or ()),
        title=str(state.get("title") or ""),
    )


def sort_from_state(state: Dict[str, Any]) -> TaskSort:
    return TaskSort(field=state.get("field") or None, descending=bool(state.get("descending")))


def toggle_value(values: List[str], value: str) -> List[str]:
    if value in values:
        return [item for item in values if item != value]
    return [*values, value]


def failure_text(exc: Exception, action: str) -> str:
    if isinstance(exc, AppError):
        return exc.message
    app.logger.exception("%s failed", action)
    return InternalError.default_message


def load_board(principal: Principal, filters: TaskFilters, sort: TaskSort) -> Dict[str, Any]:
    tasks, summary = list_board(get_store(), principal, filters, sort)
    return {"tasks": tasks, "summary": summary.to_json(), "error": ""}


def load_board_safe(principal: Principal, filters: TaskFilters, sort: TaskSort) -> Dict[str, Any]:
    try:
        return load_board(principal, filters, sort)
    except Exception as exc:
        error = failure_text(exc, f"Loading tasks for {principal.user_id}")
        return {"tasks": [], "summary": summarize_tasks([]).to_json(), "error": error}


def principal_from_cookie(raw_cookie: str | None) -> Principal | None:
    try:
        return validate(raw_cookie)
    except AuthError:
        return None


BOARD_CSS = """
:root {
  color-scheme: light;
  --bg: #eef3fb;
  --surface: rgba(255, 255, 255, 0.8);
  --border: rgba(15, 23, 42, 0.1);
  --text: #0b1220;
  --muted: #56627a;
  --accent: #0a84ff;
  --radius: 18px;
  --shadow: 0 12px 30px rgba(10, 20, 45, 0.12);
}

* { box-sizing: border-box; }
body { margin: 0; font-family: "SF Pro Text", "Segoe UI", sans-serif; background: var(--bg); color: var(--text); }

.page { max-width: 1180px; margin: 0 auto; padding: 24px; display: grid; gap: 20px; }
.card { background: var(--surface); border: 1px solid var(--border); border-radius: var(--radius); box-shadow: var(--shadow); padding: 20px; }
.navbar { display: flex; justify-content: space-between; align-items: center; padding: 14px 24px; background: var(--surface); border-bottom: 1px solid var(--border); }
.nav-title { font-size: 22px; font-weight: 700; color: var(--accent); }
.nav-actions { display: flex; gap: 10px; align-items: center; }
.meta { color: var(--muted); font-size: 14px; }
.section-head { display: flex; justify-content: space-between; align-items: center; gap: 12px; margin-bottom: 12px; }

.stats { display: grid; grid-template-columns: repeat(4, minmax(0, 1fr)); gap: 14px; }
.stat-value { font-size: 28px; font-weight: 700; }

.btn { border: 1px solid var(--border); background: #fff; border-radius: 999px; padding: 7px 14px; cursor: pointer; font-weight: 600; }
.btn.primary { background: var(--accent); border-color: var(--accent); color: #fff; }
.btn.ghost { background: transparent; }
.btn:disabled { opacity: 0.5; cursor: default; }

.pill { display: inline-block; border-radius: 999px; padding: 3px 10px; font-size: 12px; font-weight: 600; border: 1px solid transparent; }
.pill-success { background: rgba(68, 201, 140, 0.18); color: #0f5132; }
.pill-warning { background: rgba(255, 176, 86, 0.2); color: #7a4b0b; }
.pill-danger { background: rgba(255, 99, 99, 0.2); color: #7a1010; }
.pill-info { background: rgba(86, 160, 255, 0.2); color: #133d7a; }
.pill-muted { background: rgba(15, 23, 42, 0.08); color: var(--muted); }

.filters { display: flex; flex-wrap: wrap; gap: 16px; align-items: end; margin-bottom: 14px; }
.segmented { display: inline-flex; gap: 4px; flex-wrap: wrap; }
.seg-btn { border: 1px solid var(--border); background: #fff; border-radius: 999px; padding: 5px 11px; cursor: pointer; }
.seg-btn.active { background: var(--accent); color: #fff; border-color: var(--accent); }

.table { width: 100%; border-collapse: collapse; }
.table th, .table td { text-align: left; padding: 10px 8px; border-bottom: 1px solid var(--border); vertical-align: top; }
.row-loading { opacity: 0.55; }
.cell-edit { cursor: pointer; min-height: 22px; }
.placeholder { color: var(--muted); font-style: italic; }

.input, .textarea, .select { width: 100%; border: 1px solid var(--border); border-radius: 10px; padding: 7px 10px; font: inherit; background: #fff; }
.textarea { min-height: 70px; resize: vertical; }
.field { display: grid; gap: 6px; }
.label { font-size: 12px; font-weight: 700; text-transform: uppercase; color: var(--muted); }
.form { display: grid; gap: 14px; }
.form-actions { display: flex; justify-content: flex-end; gap: 10px; }

.notice { border-radius: 12px; padding: 10px 14px; }
.notice-error { background: rgba(255, 99, 99, 0.15); color: #7a1010; }
.notice-success { background: rgba(68, 201, 140, 0.15); color: #0f5132; }

.modal { position: fixed; inset: 0; background: rgba(10, 16, 30, 0.35); display: grid; place-items: center; padding: 20px; }
.modal-card { width: min(560px, 100%); background: #fff; border-radius: var(--radius); padding: 22px; display: grid; gap: 14px; }
.modal-head { display: flex; justify-content: space-between; align-items: center; }
.modal-title { margin: 0; font-size: 20px; }

@media (max-width: 720px) {
  .stats { grid-template-columns: repeat(2, minmax(0, 1fr)); }
}
"""


@component
def SignIn(login_error: str = ""):
    mode, set_mode = hooks.use_state("login")
    register_values, set_register_values = hooks.use_state({"name": "", "email": "", "password": ""})
    notice, set_notice = hooks.use_state({"kind": "error", "text": login_error} if login_error else None)

    def set_register_field(name: str, event_data: Dict[str, Any]) -> None:
        value = event_data.get("target", {}).get("value", "")
        set_register_values(lambda prev: {**prev, name: value})

    @event(prevent_default=True)
    def handle_register(event_data: Dict[str, Any]) -> None:
        try:
            accounts.register_user(get_store(), dict(register_values))
        except Exception as exc:
            set_notice({"kind": "error", "text": failure_text(exc, "Registration")})
            return
        set_notice({"kind": "success", "text": "Account created, you can sign in now."})
        set_mode("login")

    def field(label: str, name: str, input_type: str, attrs: Dict[str, Any] | None = None):
        return html.label(
            {"class": "field"},
            html.span({"class": "label"}, label),
            html.input({"class": "input", "name": name, "type": input_type, "required": True, **(attrs or {})}),
        )

    if mode == "login":
        body = html.form(
            {"class": "form", "method": "post", "action": "/api/auth/login"},
            field("Email", "email", "email"),
            field("Password", "password", "password"),
            html.label(
                {"class": "meta"},
                html.input({"type": "checkbox", "name": "remember", "value": "on"}),
                " Keep me signed in for 7 days",
            ),
            html.div(
                {"class": "form-actions"},
                html.button({"class": "btn ghost", "type": "button", "on_click": lambda e: set_mode("register")}, "Create account"),
                html.button({"class": "btn primary", "type": "submit"}, "Sign in"),
            ),
        )
    else:
        body = html.form(
            {"class": "form", "on_submit": handle_register},
            *[
                field(
                    label,
                    name,
                    input_type,
                    {"value": register_values.get(name, ""), "on_change": lambda e, name=name: set_register_field(name, e)},
                )
                for label, name, input_type in (
                    ("Name", "name", "text"),
                    ("Email", "email", "email"),
                    ("Password", "password", "password"),
                )
            ],
            html.div(
                {"class": "form-actions"},
                html.button({"class": "btn ghost", "type": "button", "on_click": lambda e: set_mode("login")}, "Back to sign in"),
                html.button({"class": "btn primary", "type": "submit"}, "Register"),
            ),
        )

    return html.main(
        {"class": "page", "style": {"maxWidth": "480px"}},
        html.section(
            {"class": "card"},
            html.h1("TaskFlow"),
            html.div({"class": "meta"}, "Sign in to manage your tasks." if mode == "login" else "Create a TaskFlow account."),
            *([html.div({"class": f"notice notice-{notice['kind']}"}, notice["text"])] if notice else []),
            body,
        ),
    )


@component
def TaskBoard(principal: Principal):
    filters, set_filters = hooks.use_state({"priorities": [], "statuses": [], "title": ""})
    sort, set_sort = hooks.use_state({"field": "", "descending": False})
    data, set_data = hooks.use_state(lambda: load_board_safe(principal, TaskFilters(), TaskSort()))
    edit_state, set_edit_state = hooks.use_state(EditState())
    notice, set_notice = hooks.use_state(None)
    modal, set_modal = hooks.use_state({"open": False})
    form_values, set_form_values = hooks.use_state({})
    is_busy, set_is_busy = hooks.use_state(False)
    busy_ref = hooks.use_ref(False)

    def refresh(next_filters: Dict[str, Any] | None = None, next_sort: Dict[str, Any] | None = None) -> None:
        set_data(
            load_board_safe(
                principal,
                filters_from_state(next_filters if next_filters is not None else filters),
                sort_from_state(next_sort if next_sort is not None else sort),
            )
        )

    def run_mutation(action: Callable[[], None], success_text: str = "") -> bool:
        if busy_ref.current:
            return False
        busy_ref.current = True
        set_is_busy(True)
        try:
            action()
        except Exception as exc:
            set_notice({"kind": "error", "text": failure_text(exc, f"Task change for {principal.user_id}")})
            return False
        finally:
            busy_ref.current = False
            set_is_busy(False)
        if success_text:
            set_notice({"kind": "success", "text": success_text})
        refresh()
        return True

    def on_saved() -> None:
        set_notice({"kind": "success", "text": "Task updated"})
        refresh()

    editor = InlineEditor(
        commit=lambda task_id, patch: update_task(get_store(), principal, task_id, patch, partial=True),
        state=edit_state,
        on_change=set_edit_state,
        on_success=on_saved,
        on_error=lambda message: set_notice({"kind": "error", "text": message}),
    )

    def apply_filters(next_filters: Dict[str, Any]) -> None:
        set_filters(next_filters)
        refresh(next_filters=next_filters)

    def apply_sort(next_sort: Dict[str, Any]) -> None:
        set_sort(next_sort)
        refresh(next_sort=next_sort)

    def start_edit(task: Dict[str, Any], field: str, value: Any) -> None:
        if is_busy:
            return
        editor.start(task["id"], field, value)

    def commit_value(task: Dict[str, Any], value: Any) -> None:
        editor.change(value)
        editor.commit(updated_at=task.get("updatedAt"))

    def handle_text_keys(task: Dict[str, Any], event_data: Dict[str, Any]) -> None:
        key = event_data.get("key")
        if key == "Escape":
            editor.cancel()
        elif key == "Enter" and not event_data.get("shiftKey"):
            commit_value(task, event_data.get("target", {}).get("value", ""))

    def open_new_task_modal() -> None:
        if busy_ref.current:
            return
        set_form_values({"title": "", "description": "", "priority": "medium", "status": "pending", "dueDate": ""})
        set_modal({"open": True})

    def close_modal(event_data: Dict[str, Any] | None = None) -> None:
        if busy_ref.current:
            return
        set_modal({"open": False})

    def set_form_field(name: str, value: Any) -> None:
        set_form_values(lambda prev: {**prev, name: value})

    @event(prevent_default=True)
    def handle_create(event_data: Dict[str, Any]) -> None:
        values = {key: value for key, value in form_values.items() if value != "" or key == "title"}
        if run_mutation(lambda: create_task(get_store(), principal, values), "Task created"):
            set_modal({"open": False})

    def handle_delete(task: Dict[str, Any]) -> None:
        run_mutation(lambda: delete_task(get_store(), principal, task["id"]), "Task deleted")

    def render_segmented(options: List[Dict[str, str]], active: Callable[[str], bool], on_pick: Callable[[str], None]):
        return html.div(
            {"class": "segmented"},
            *[
                html.button(
                    {
                        "key": option["value"],
                        "type": "button",
                        "class": f"seg-btn {'active' if active(option['value']) else ''}",
                        "disabled": is_busy,
                        "on_click": lambda e, value=option["value"]: on_pick(value),
                    },
                    option["label"],
                )
                for option in options
            ],
        )

    def render_choice_select(task: Dict[str, Any], field: str, labels: Dict[str, str]):
        return html.select(
            {
                "class": "select",
                "value": edit_state.editing_value,
                "auto_focus": True,
                "on_change": lambda e: commit_value(task, e.get("target", {}).get("value")),
                "on_blur": lambda e: editor.commit(updated_at=task.get("updatedAt")),
            },
            *[html.option({"key": value, "value": value}, label) for value, label in labels.items()],
        )

    def render_description(task: Dict[str, Any]):
        if edit_state.is_editing(task["id"], "description"):
            return html.textarea(
                {
                    "class": "textarea",
                    "default_value": edit_state.editing_value or "",
                    "auto_focus": True,
                    "placeholder": "Add a description",
                    "on_change": lambda e: editor.change(e.get("target", {}).get("value", "")),
                    "on_key_down": lambda e: handle_text_keys(task, e),
                    "on_blur": lambda e: commit_value(task, e.get("target", {}).get("value", "")),
                }
            )
        text = task.get("description") or ""
        return html.div(
            {"class": "cell-edit", "on_click": lambda e: start_edit(task, "description", text)},
            text or html.span({"class": "placeholder"}, "Click to add a description"),
        )

    def render_priority(task: Dict[str, Any]):
        if edit_state.is_editing(task["id"], "priority"):
            return render_choice_select(task, "priority", PRIORITY_LABELS)
        priority = task.get("priority")
        return html.span(
            {"class": f"pill cell-edit {priority_class(priority)}", "on_click": lambda e: start_edit(task, "priority", priority)},
            PRIORITY_LABELS.get(priority, priority or ""),
        )

    def render_status(task: Dict[str, Any]):
        if edit_state.is_editing(task["id"], "status"):
            return render_choice_select(task, "status", STATUS_LABELS)
        status = task.get("status")
        return html.span(
            {"class": f"pill cell-edit {task_status_class(status)}", "on_click": lambda e: start_edit(task, "status", status)},
            STATUS_LABELS.get(status, status or ""),
        )

    def render_due_date(task: Dict[str, Any]):
        due = date_part(task.get("dueDate"))
        if edit_state.is_editing(task["id"], "dueDate"):
            return html.input(
                {
                    "class": "input",
                    "type": "date",
                    "default_value": edit_state.editing_value or "",
                    "min": earliest_due_date(task.get("createdAt")),
                    "auto_focus": True,
                    "on_change": lambda e: editor.change(e.get("target", {}).get("value", "")),
                    "on_key_down": lambda e: handle_text_keys(task, e),
                    "on_blur": lambda e: commit_value(task, e.get("target", {}).get("value", "")),
                }
            )
        return html.div(
            {"class": "cell-edit", "on_click": lambda e: start_edit(task, "dueDate", due)},
            due or html.span({"class": "placeholder"}, "Click to set a date"),
        )

    def render_row(task: Dict[str, Any]):
        loading = edit_state.is_loading(task["id"])
        return html.tr(
            {"key": task["id"], "class": "row-loading" if loading else ""},
            html.td(task.get("title") or ""),
            html.td(render_description(task)),
            html.td(render_priority(task)),
            html.td(render_status(task)),
            html.td(render_due_date(task)),
            html.td({"class": "meta"}, date_part(task.get("createdAt"))),
            html.td(
                html.button(
                    {
                        "class": "btn ghost",
                        "disabled": is_busy or loading,
                        "on_click": lambda e: handle_delete(task),
                    },
                    "Delete",
                ),
            ),
        )

    def render_filters():
        priority_options = [{"value": value, "label": PRIORITY_LABELS[value]} for value in PRIORITIES]
        status_options = [{"value": value, "label": STATUS_LABELS[value]} for value in STATUSES]
        return html.div(
            {"class": "filters"},
            html.div(
                {"class": "field"},
                html.span({"class": "label"}, "Priority"),
                render_segmented(
                    priority_options,
                    lambda value: value in filters["priorities"],
                    lambda value: apply_filters({**filters, "priorities": toggle_value(filters["priorities"], value)}),
                ),
            ),
            html.div(
                {"class": "field"},
                html.span({"class": "label"}, "Status"),
                render_segmented(
                    status_options,
                    lambda value: value in filters["statuses"],
                    lambda value: apply_filters({**filters, "statuses": toggle_value(filters["statuses"], value)}),
                ),
            ),
            html.div(
                {"class": "field"},
                html.span({"class": "label"}, "Title contains"),
                html.input(
                    {
                        "class": "input",
                        "type": "search",
                        "default_value": filters["title"],
                        "on_change": lambda e: apply_filters({**filters, "title": e.get("target", {}).get("value", "")}),
                    }
                ),
            ),
            html.div(
                {"class": "field"},
                html.span({"class": "label"}, "Sort by"),
                html.select(
                    {
                        "class": "select",
                        "value": sort["field"],
                        "on_change": lambda e: apply_sort({**sort, "field": e.get("target", {}).get("value", "")}),
                    },
                    *[html.option({"key": option["value"], "value": option["value"]}, option["label"]) for option in SORT_OPTIONS],
                ),
            ),
            render_segmented(
                [{"value": "asc", "label": "Ascending"}, {"value": "desc", "label": "Descending"}],
                lambda value: (value == "desc") == bool(sort["descending"]),
                lambda value: apply_sort({**sort, "descending": value == "desc"}),
            ),
        )

    def render_modal():
        if not modal.get("open"):
            return None
        return html.div(
            {"class": "modal"},
            html.div(
                {"class": "modal-card"},
                html.div(
                    {"class": "modal-head"},
                    html.h3({"class": "modal-title"}, "New task"),
                    html.button({"class": "btn ghost", "type": "button", "disabled": is_busy, "on_click": close_modal}, "Close"),
                ),
                html.form(
                    {"class": "form", "on_submit": handle_create},
                    html.label(
                        {"class": "field"},
                        html.span({"class": "label"}, "Title"),
                        html.input(
                            {
                                "class": "input",
                                "value": form_values.get("title", ""),
                                "on_change": lambda e: set_form_field("title", e.get("target", {}).get("value", "")),
                            }
                        ),
                    ),
                    html.label(
                        {"class": "field"},
                        html.span({"class": "label"}, "Description"),
                        html.textarea(
                            {
                                "class": "textarea",
                                "value": form_values.get("description", ""),
                                "on_change": lambda e: set_form_field("description", e.get("target", {}).get("value", "")),
                            }
                        ),
                    ),
                    html.div(
                        {"class": "field"},
                        html.span({"class": "label"}, "Priority"),
                        render_segmented(
                            [{"value": value, "label": PRIORITY_LABELS[value]} for value in PRIORITIES],
                            lambda value: form_values.get("priority") == value,
                            lambda value: set_form_field("priority", value),
                        ),
                    ),
                    html.div(
                        {"class": "field"},
                        html.span({"class": "label"}, "Status"),
                        render_segmented(
                            [{"value": value, "label": STATUS_LABELS[value]} for value in STATUSES],
                            lambda value: form_values.get("status") == value,
                            lambda value: set_form_field("status", value),
                        ),
                    ),
                    html.label(
                        {"class": "field"},
                        html.span({"class": "label"}, "Due date"),
                        html.input(
                            {
                                "class": "input",
                                "type": "date",
                                "value": form_values.get("dueDate", ""),
                                "on_change": lambda e: set_form_field("dueDate", e.get("target", {}).get("value", "")),
                            }
                        ),
                    ),
                    html.div(
                        {"class": "form-actions"},
                        html.button({"type": "button", "class": "btn ghost", "disabled": is_busy, "on_click": close_modal}, "Cancel"),
                        html.button({"type": "submit", "class": "btn primary", "disabled": is_busy}, "Create"),
                    ),
                ),
            ),
        )

    summary = data["summary"]
    tasks = data["tasks"]
    stats = [
        ("Total tasks", str(summary["total"])),
        ("In progress", str(summary["inProgress"])),
        ("Completion rate", f"{summary['completionRate']}%"),
        ("Overdue", str(summary["overdue"])),
    ]

    return html.div(
        {"id": "taskflow-root"},
        html.header(
            {"class": "navbar"},
            html.div({"class": "nav-title"}, "TaskFlow"),
            html.div(
                {"class": "nav-actions"},
                html.span({"class": "meta"}, f"Signed in as {principal.name}"),
                *([html.span({"class": "pill pill-warning"}, "Saving...")] if is_busy or edit_state.phase == "committing" else []),
                html.form(
                    {"method": "post", "action": "/api/auth/logout"},
                    html.button({"class": "btn", "type": "submit"}, "Sign out"),
                ),
            ),
        ),
        html.main(
            {"class": "page"},
            html.section(
                {"class": "stats"},
                *[
                    html.div(
                        {"class": "card", "key": label},
                        html.div({"class": "meta"}, label),
                        html.div({"class": "stat-value"}, value),
                    )
                    for label, value in stats
                ],
            ),
            *(
                [
                    html.div(
                        {"class": f"notice notice-{notice['kind']}", "on_click": lambda e: set_notice(None)},
                        notice["text"],
                    )
                ]
                if notice
                else []
            ),
            html.section(
                {"class": "card"},
                html.div(
                    {"class": "section-head"},
                    html.div(
                        html.h2("Tasks"),
                        html.div({"class": "meta"}, f"Showing {len(tasks)} of {summary['total']} tasks. Click a cell to edit it."),
                    ),
                    html.button({"class": "btn primary", "disabled": is_busy, "on_click": lambda e: open_new_task_modal()}, "New task"),
                ),
                render_filters(),
                *([html.div({"class": "notice notice-error"}, data["error"])] if data.get("error") else []),
                html.table(
                    {"class": "table"},
                    html.thead(
                        html.tr(
                            *[
                                html.th(label)
                                for label in ("Title", "Description", "Priority", "Status", "Due date", "Created", "")
                            ]
                        )
                    ),
                    html.tbody(*[render_row(task) for task in tasks]),
                )
                if tasks
                else html.div({"class": "meta"}, "No tasks match these filters." if summary["total"] else "No tasks yet."),
            ),
        ),
        render_modal(),
    )


@component
def App():
    request_obj = use_request()
    location = use_location()
    principal = principal_from_cookie(request_obj.cookies.get(SESSION_COOKIE_NAME))
    login_error = parse_qs((location.search or "").lstrip("?")).get("login_error", [""])[0]
    return html.div(
        html.style(BOARD_CSS),
        TaskBoard(principal) if principal else SignIn(login_error),
    )


# One-time optional schema initialization at process startup (not per request)
maybe_init_db_on_startup()

configure(
    app,
    App,
    Options(
        head=(
            {"tagName": "title", "children": ["TaskFlow"]},
            {
                "tagName": "meta",
                "attributes": {"name": "viewport", "content": "width=device-width, initial-scale=1"},
            },
        )
    ),
)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "5001")),
        debug=os.environ.get("FLASK_DEBUG", "0") == "1",
    )
