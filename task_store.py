from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Tuple

import psycopg2
from flask import g
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from config import env_int, required_env

logger = logging.getLogger(__name__)

DB_POOL: pool.ThreadedConnectionPool | None = None

# API field name -> column usable in ORDER BY
SORTABLE_COLUMNS = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "status": "status",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

TASK_COLUMNS = (
    "t.id, t.title, t.description, t.priority, t.status, t.due_date, t.creator_id, "
    "t.created_at, t.updated_at, u.name AS creator_name, u.email AS creator_email"
)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        priority TEXT NOT NULL DEFAULT 'medium'
            CHECK (priority IN ('low', 'medium', 'high', 'urgent')),
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'in_progress', 'completed', 'cancelled')),
        due_date TIMESTAMPTZ,
        creator_id TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS tasks_creator_id_idx ON tasks (creator_id)",
]


def get_db_pool() -> pool.ThreadedConnectionPool:
    global DB_POOL
    if DB_POOL is None:
        DB_POOL = pool.ThreadedConnectionPool(
            minconn=env_int("DB_POOL_MIN", 1),
            maxconn=env_int("DB_POOL_MAX", 10),
            dsn=required_env("DATABASE_URL"),
        )
    return DB_POOL


def get_db():
    if "db" not in g:
        g.db = get_db_pool().getconn()
    return g.db


def close_db(exc: BaseException | None) -> None:
    db = g.pop("db", None)
    if db is None:
        return
    try:
        db.rollback()
    except psycopg2.Error:
        logger.warning("Rollback failed while returning connection to the pool", exc_info=True)
    get_db_pool().putconn(db)


def ensure_column(db, table: str, column: str, col_type: str) -> None:
    with db.cursor() as cursor:
        cursor.execute(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} {col_type}")


def init_db(db) -> None:
    with db.cursor() as cursor:
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)

    ensure_column(db, "users", "role", "TEXT NOT NULL DEFAULT 'user'")
    ensure_column(db, "tasks", "due_date", "TIMESTAMPTZ")
    ensure_column(db, "tasks", "updated_at", "TIMESTAMPTZ NOT NULL DEFAULT now()")
    db.commit()


def maybe_init_db_on_startup() -> None:
    """Create or upgrade the schema once at process start when RUN_DB_INIT=1.

    Schema changes never run on the request path. Set RUN_DB_INIT=1, restart,
    then set it back to 0.
    """
    if os.environ.get("RUN_DB_INIT", "0") != "1":
        return

    db = get_db_pool().getconn()
    try:
        init_db(db)
        logger.info("Database schema initialised")
    finally:
        db.rollback()
        get_db_pool().putconn(db)


def _to_postgres_placeholders(query: str) -> str:
    return query.replace("?", "%s")


def build_task_select(
    creator_id: str,
    priorities: Iterable[str] | None = None,
    statuses: Iterable[str] | None = None,
    title_contains: str | None = None,
    order_column: str | None = None,
    descending: bool = False,
) -> Tuple[str, List[Any]]:
    clauses = ["t.creator_id = ?"]
    params: List[Any] = [creator_id]

    if priorities:
        clauses.append("t.priority = ANY(?)")
        params.append(list(priorities))
    if statuses:
        clauses.append("t.status = ANY(?)")
        params.append(list(statuses))
    if title_contains:
        clauses.append("strpos(t.title, ?) > 0")
        params.append(title_contains)

    if order_column is None:
        order_by = "t.created_at DESC, t.id"
    else:
        if order_column not in SORTABLE_COLUMNS.values():
            raise ValueError(f"Cannot sort on column {order_column!r}")
        direction = "DESC" if descending else "ASC"
        order_by = f"t.{order_column} {direction} NULLS LAST, t.id"

    query = (
        f"SELECT {TASK_COLUMNS} FROM tasks t LEFT JOIN users u ON u.id = t.creator_id "
        f"WHERE {' AND '.join(clauses)} ORDER BY {order_by}"
    )
    return query, params


def new_id() -> str:
    return uuid.uuid4().hex


class TaskStore:
    """Task and user persistence over one pooled psycopg2 connection.

    Rows come back as plain dicts with column names as keys. Task rows carry
    ``creator_name`` and ``creator_email`` from the owning user.
    """

    def __init__(self, connection: Callable[[], Any] = get_db) -> None:
        self._connection = connection

    def _fetch_one(self, query: str, params: List[Any] | Tuple[Any, ...] | None = None) -> Dict[str, Any] | None:
        with self._connection().cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(_to_postgres_placeholders(query), params)
            row = cursor.fetchone()
            return dict(row) if row is not None else None

    def _fetch_all(self, query: str, params: List[Any] | Tuple[Any, ...] | None = None) -> List[Dict[str, Any]]:
        with self._connection().cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(_to_postgres_placeholders(query), params)
            return [dict(row) for row in cursor.fetchall()]

    def _execute(self, query: str, params: List[Any] | Tuple[Any, ...] | None = None) -> int:
        db = self._connection()
        with db.cursor() as cursor:
            cursor.execute(_to_postgres_placeholders(query), params)
            rowcount = cursor.rowcount
        db.commit()
        return rowcount

    def ping(self) -> bool:
        row = self._fetch_one("SELECT 1 AS ok")
        return bool(row and row.get("ok") == 1)

    def select_tasks(
        self,
        creator_id: str,
        priorities: Iterable[str] | None = None,
        statuses: Iterable[str] | None = None,
        title_contains: str | None = None,
        order_column: str | None = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        query, params = build_task_select(
            creator_id, priorities, statuses, title_contains, order_column, descending
        )
        return self._fetch_all(query, params)

    def get_task(self, task_id: str, creator_id: str | None = None) -> Dict[str, Any] | None:
        query = f"SELECT {TASK_COLUMNS} FROM tasks t LEFT JOIN users u ON u.id = t.creator_id WHERE t.id = ?"
        params: List[Any] = [task_id]
        if creator_id is not None:
            query += " AND t.creator_id = ?"
            params.append(creator_id)
        return self._fetch_one(query, params)

    def insert_task(self, values: Dict[str, Any]) -> str:
        task_id = new_id()
        data = {"id": task_id, **values}
        columns = ", ".join(data.keys())
        placeholders = ", ".join("?" for _ in data)
        self._execute(f"INSERT INTO tasks ({columns}) VALUES ({placeholders})", list(data.values()))
        return task_id

    def update_task(
        self,
        task_id: str,
        creator_id: str,
        values: Dict[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> bool:
        assignments = [f"{key} = ?" for key in values]
        assignments.append("updated_at = now()")
        query = f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ? AND creator_id = ?"
        params = list(values.values()) + [task_id, creator_id]
        if expected_updated_at is not None:
            query += " AND updated_at = ?"
            params.append(expected_updated_at)
        return self._execute(query, params) == 1

    def delete_task(self, task_id: str, creator_id: str) -> bool:
        return self._execute("DELETE FROM tasks WHERE id = ? AND creator_id = ?", (task_id, creator_id)) == 1

    def get_user(self, user_id: str) -> Dict[str, Any] | None:
        return self._fetch_one(
            "SELECT id, name, email, role, created_at, updated_at FROM users WHERE id = ?",
            (user_id,),
        )

    def get_user_by_email(self, email: str) -> Dict[str, Any] | None:
        return self._fetch_one("SELECT * FROM users WHERE lower(email) = lower(?)", (email,))

    def insert_user(self, values: Dict[str, Any]) -> str:
        user_id = new_id()
        self._execute(
            "INSERT INTO users (id, name, email, password_hash, role) VALUES (?, ?, ?, ?, ?)",
            (user_id, values["name"], values["email"], values["password_hash"], values.get("role", "user")),
        )
        return user_id
