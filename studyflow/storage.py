"""
SQLite storage module for StudyFlow.
Persistence gateway for session records, plus history queries,
settings and CSV export.
"""

import sqlite3
import os
import json
import time
import csv
import logging
from dataclasses import fields
from pathlib import Path
from typing import List, Optional
from contextlib import contextmanager
from datetime import datetime, timedelta

from .errors import PersistenceFailure
from .models import (
    AppSettings, QuizQuestion, SessionRecord, UserProgress, default_db_path
)

logger = logging.getLogger(__name__)


def get_app_data_dir() -> Path:
    """
    Get the appropriate application data directory based on OS.
    Creates the directory if it doesn't exist.
    """
    if os.name == 'nt':  # Windows
        base = Path(os.environ.get('APPDATA', Path.home()))
    elif os.name == 'posix':
        # macOS uses ~/Library/Application Support, Linux uses ~/.local/share
        if os.uname().sysname == 'Darwin':
            base = Path.home() / 'Library' / 'Application Support'
        else:
            base = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local' / 'share'))
    else:
        base = Path.home()

    app_dir = base / 'StudyFlow'
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


class Storage:
    """
    Database storage manager.
    Every operation opens its own connection, so the save worker
    thread and the UI thread never share one.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize storage with database path.

        Args:
            db_path: Optional custom path for database file.
                    If None, uses $STUDYFLOW_DB or the app data directory.
        """
        if db_path is None:
            db_path = default_db_path() or str(get_app_data_dir() / 'studyflow.db')

        self.db_path = db_path
        self._init_database()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceFailure(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database schema if tables don't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS study_sessions (
                    id TEXT PRIMARY KEY,
                    date TEXT NOT NULL,
                    topic TEXT NOT NULL,
                    reference_link TEXT,
                    started_at TEXT NOT NULL,
                    focus_minutes INTEGER NOT NULL DEFAULT 0,
                    break_minutes INTEGER NOT NULL DEFAULT 0,
                    notes TEXT,
                    quiz TEXT NOT NULL DEFAULT '[]',
                    quiz_score INTEGER,
                    status TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_study_sessions_date
                ON study_sessions(date)
            ''')

    # ==================== Session records ====================

    def upsert(self, record: SessionRecord):
        """
        Insert a session record, or update it if the id already exists.

        Raises:
            PersistenceFailure: If the database rejects the write.
        """
        now = int(time.time())
        with self._get_connection() as conn:
            conn.execute('''
                INSERT INTO study_sessions
                (id, date, topic, reference_link, started_at, focus_minutes,
                 break_minutes, notes, quiz, quiz_score, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    focus_minutes = excluded.focus_minutes,
                    break_minutes = excluded.break_minutes,
                    notes = excluded.notes,
                    quiz = excluded.quiz,
                    quiz_score = excluded.quiz_score,
                    status = excluded.status,
                    updated_at = excluded.updated_at
            ''', (
                record.id,
                record.date,
                record.topic,
                record.reference_link,
                record.started_at,
                record.focus_minutes,
                record.break_minutes,
                record.notes,
                json.dumps([q.to_dict() for q in record.quiz]),
                record.quiz_score,
                record.status,
                now,
                now
            ))

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        """Get a session record by ID."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM study_sessions WHERE id = ?', (session_id,))
            row = cursor.fetchone()
            if row:
                return self._row_to_session(row)
            return None

    def get_sessions(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        topic: Optional[str] = None,
        limit: int = 100
    ) -> List[SessionRecord]:
        """
        Get session records with optional filters, newest first.

        Args:
            start_date: Filter sessions started on or after this date.
            end_date: Filter sessions started on or before this date.
            topic: Filter by exact topic.
            limit: Maximum number of results.
        """
        query = 'SELECT * FROM study_sessions WHERE 1=1'
        params = []

        if topic is not None:
            query += ' AND topic = ?'
            params.append(topic)

        if start_date is not None:
            query += ' AND date >= ?'
            params.append(start_date.date().isoformat())

        if end_date is not None:
            query += ' AND date <= ?'
            params.append(end_date.date().isoformat())

        query += ' ORDER BY started_at DESC LIMIT ?'
        params.append(limit)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_session(row) for row in cursor.fetchall()]

    def _row_to_session(self, row: sqlite3.Row) -> SessionRecord:
        """Convert a database row to a SessionRecord."""
        return SessionRecord(
            id=row['id'],
            topic=row['topic'],
            reference_link=row['reference_link'] or '',
            started_at=row['started_at'],
            focus_minutes=row['focus_minutes'],
            break_minutes=row['break_minutes'],
            notes=row['notes'] or '',
            quiz=[QuizQuestion.from_dict(q) for q in json.loads(row['quiz'] or '[]')],
            quiz_score=row['quiz_score'],
            status=row['status']
        )

    # ==================== Statistics Queries ====================

    def get_today_focus_minutes(self) -> int:
        """Get total focus minutes for today."""
        today = datetime.now()
        return self._get_focus_minutes_since(today)

    def get_week_focus_minutes(self) -> int:
        """Get total focus minutes for this week (Monday start)."""
        today = datetime.now()
        start_of_week = today - timedelta(days=today.weekday())
        return self._get_focus_minutes_since(start_of_week)

    def _get_focus_minutes_since(self, since: datetime) -> int:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT COALESCE(SUM(focus_minutes), 0) as total
                FROM study_sessions
                WHERE date >= ?
            ''', (since.date().isoformat(),))
            result = cursor.fetchone()
            return result['total'] if result else 0

    def get_progress(self) -> UserProgress:
        """
        Aggregate progress over all sessions.
        Sessions without a quiz score count as zero in the average.
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT
                    COUNT(*) as total_sessions,
                    COUNT(DISTINCT topic) as topics_learned,
                    COALESCE(AVG(COALESCE(quiz_score, 0)), 0) as average_score
                FROM study_sessions
            ''')
            row = cursor.fetchone()
            return UserProgress(
                total_sessions=row['total_sessions'],
                topics_learned=row['topics_learned'],
                average_quiz_score=float(row['average_score'])
            )

    # ==================== Settings ====================

    def get_settings(self) -> AppSettings:
        """Get application settings, converted to the field types."""
        settings = AppSettings()
        types = {f.name: type(getattr(settings, f.name)) for f in fields(settings)}
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT key, value FROM settings')
            for row in cursor.fetchall():
                key, value = row['key'], row['value']
                if key not in types:
                    continue
                try:
                    setattr(settings, key, types[key](value))
                except ValueError:
                    logger.warning("Ignoring invalid setting %s=%r", key, value)
        return settings

    def save_settings(self, settings: AppSettings):
        """Save application settings."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            for f in fields(settings):
                cursor.execute('''
                    INSERT OR REPLACE INTO settings (key, value)
                    VALUES (?, ?)
                ''', (f.name, str(getattr(settings, f.name))))

    # ==================== Export ====================

    def export_to_csv(
        self,
        filepath: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> int:
        """
        Export session records to a CSV file, oldest first.

        Returns:
            Number of sessions exported.
        """
        sessions = self.get_sessions(start_date, end_date, limit=-1)
        sessions.reverse()

        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([
                'ID', 'Date', 'Topic', 'Start Time', 'Focus (min)',
                'Break (min)', 'Quiz Score', 'Status', 'Reference'
            ])
            for session in sessions:
                writer.writerow([
                    session.id,
                    session.date,
                    session.topic,
                    session.started_at[11:16],
                    session.focus_minutes,
                    session.break_minutes,
                    '' if session.quiz_score is None else session.quiz_score,
                    session.status,
                    session.reference_link
                ])

        return len(sessions)
