"""Scheduled task storage and run logging."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from gigaclaw.scheduling.types import ScheduledTask, TaskRunLog


class TaskRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def create_task(self, task: ScheduledTask) -> None:
        self._db.execute(
            """INSERT INTO scheduled_tasks
               (id, group_folder, chat_jid, prompt, schedule_type, schedule_value, context_mode, next_run, status, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                task.id, task.group_folder, task.chat_jid, task.prompt,
                task.schedule_type, task.schedule_value, task.context_mode,
                task.next_run, task.status, task.created_at,
            ),
        )
        self._db.commit()

    def get_task_by_id(self, id: str) -> ScheduledTask | None:
        row = self._db.execute("SELECT * FROM scheduled_tasks WHERE id = ?", (id,)).fetchone()
        if not row:
            return None
        return self._row_to_task(row)

    def get_all_tasks(self) -> list[ScheduledTask]:
        rows = self._db.execute("SELECT * FROM scheduled_tasks ORDER BY created_at DESC").fetchall()
        return [self._row_to_task(row) for row in rows]

    def record_run(self, id: str, last_result: str) -> None:
        self._db.execute(
            "UPDATE scheduled_tasks SET last_run = ?, last_result = ? WHERE id = ?",
            (datetime.now().isoformat(), last_result, id),
        )
        self._db.commit()

    def log_task_run(self, log: TaskRunLog) -> None:
        self._db.execute(
            """INSERT INTO task_run_logs (task_id, run_at, duration_ms, status, result, error)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (log.task_id, log.run_at, log.duration_ms, log.status, log.result, log.error),
        )
        self._db.commit()

    def get_run_logs(self, task_id: str) -> list[TaskRunLog]:
        rows = self._db.execute(
            "SELECT * FROM task_run_logs WHERE task_id = ? ORDER BY run_at", (task_id,)
        ).fetchall()
        return [
            TaskRunLog(
                task_id=row["task_id"],
                run_at=row["run_at"],
                duration_ms=row["duration_ms"],
                status=row["status"],
                result=row["result"],
                error=row["error"],
            )
            for row in rows
        ]

    def _row_to_task(self, row: sqlite3.Row) -> ScheduledTask:
        return ScheduledTask(
            id=row["id"],
            group_folder=row["group_folder"],
            chat_jid=row["chat_jid"],
            prompt=row["prompt"],
            schedule_type=row["schedule_type"],
            schedule_value=row["schedule_value"],
            context_mode=row["context_mode"],
            next_run=row["next_run"],
            last_run=row["last_run"],
            last_result=row["last_result"],
            status=row["status"],
            created_at=row["created_at"],
        )
