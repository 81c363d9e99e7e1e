# tests/test_board_helpers.py

from __future__ import annotations

from task_service import TaskFilters, TaskSort


def test_pill_classes_fall_back_to_muted(app) -> None:
    import website

    assert website.priority_class("urgent") == "pill-danger"
    assert website.priority_class(None) == "pill-muted"
    assert website.task_status_class("completed") == "pill-success"
    assert website.task_status_class("archived") == "pill-muted"


def test_board_state_converts_to_query_objects(app) -> None:
    import website

    assert website.filters_from_state({"priorities": ["high"], "statuses": [], "title": "x"}) == TaskFilters(
        priorities=("high",), title="x"
    )
    assert website.sort_from_state({"field": "", "descending": True}) == TaskSort(field=None, descending=True)
    assert website.toggle_value(["low"], "high") == ["low", "high"]
    assert website.toggle_value(["low", "high"], "low") == ["high"]
    assert website.date_part("2026-02-01T00:00:00+00:00") == "2026-02-01"


def test_board_load_hides_unexpected_errors(app, store, alice, monkeypatch) -> None:
    import website

    store.add_task(alice.user_id, "T", status="completed")
    with app.app_context():
        board = website.load_board_safe(alice, TaskFilters(), TaskSort())
    assert [task["title"] for task in board["tasks"]] == ["T"]
    assert board["summary"]["completed"] == 1

    def explode(*args, **kwargs):
        raise RuntimeError("password=hunter2")

    monkeypatch.setattr(store, "select_tasks", explode)
    with app.app_context():
        board = website.load_board_safe(alice, TaskFilters(), TaskSort())
    assert board["tasks"] == []
    assert "hunter2" not in board["error"]
    assert website.principal_from_cookie("garbage") is None


def test_failure_text_keeps_app_messages_and_hides_the_rest(app, caplog) -> None:
    import psycopg2

    import website
    from errors import InternalError, InvalidPriority

    assert website.failure_text(InvalidPriority(), "Task change") == InvalidPriority.default_message

    try:
        raise psycopg2.OperationalError("server closed the connection")
    except psycopg2.Error as exc:
        with caplog.at_level("ERROR"):
            text = website.failure_text(exc, "Task change")

    assert text == InternalError.default_message
    assert "server closed" not in text
    assert "Task change failed" in caplog.text


def test_due_date_picker_starts_the_day_after_creation(app) -> None:
    import website

    assert website.earliest_due_date("2026-01-01T09:00:00+00:00") == "2026-01-02"
    assert website.earliest_due_date("2026-01-31T23:59:00+00:00") == "2026-02-01"
    assert website.earliest_due_date(None) == ""
