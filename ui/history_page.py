"""
History page widget for StudyFlow.
Displays past study sessions with statistics, filtering and export.
"""

from datetime import datetime
from typing import Optional
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QDateEdit, QTableWidget, QTableWidgetItem,
    QGroupBox, QMessageBox, QFileDialog, QHeaderView
)
from PySide6.QtCore import QDate, Slot
from PySide6.QtGui import QFont

from studyflow.errors import PersistenceFailure
from studyflow.storage import Storage


def _format_minutes(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


class HistoryPage(QWidget):
    """
    History page showing session records with filtering and statistics.
    """

    def __init__(self, storage: Storage, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self.storage = storage

        self._setup_ui()
        self._connect_signals()

    def _setup_ui(self):
        """Set up the UI components."""
        layout = QVBoxLayout(self)
        layout.setSpacing(15)
        layout.setContentsMargins(20, 20, 20, 20)

        stats_box = QGroupBox("Statistics")
        stats_layout = QHBoxLayout(stats_box)
        stats_layout.setSpacing(40)

        value_font = QFont()
        value_font.setPointSize(20)
        value_font.setBold(True)

        self.today_total_label = self._add_stat(stats_layout, "Today", "#66BB6A", value_font)
        self.week_total_label = self._add_stat(stats_layout, "This Week", "#42A5F5", value_font)
        self.sessions_count_label = self._add_stat(stats_layout, "Sessions", "#FFA726", value_font)
        self.topics_label = self._add_stat(stats_layout, "Topics", "#AB47BC", value_font)
        self.average_score_label = self._add_stat(stats_layout, "Avg. Score", "#26C6DA", value_font)

        stats_layout.addStretch()
        layout.addWidget(stats_box)

        filter_layout = QHBoxLayout()

        filter_layout.addWidget(QLabel("From:"))
        self.start_date = QDateEdit()
        self.start_date.setCalendarPopup(True)
        self.start_date.setDate(QDate.currentDate().addDays(-7))
        filter_layout.addWidget(self.start_date)

        filter_layout.addWidget(QLabel("To:"))
        self.end_date = QDateEdit()
        self.end_date.setCalendarPopup(True)
        self.end_date.setDate(QDate.currentDate())
        filter_layout.addWidget(self.end_date)

        self.filter_btn = QPushButton("Filter")
        self.filter_btn.setMinimumWidth(80)
        filter_layout.addWidget(self.filter_btn)

        self.export_btn = QPushButton("Export CSV")
        self.export_btn.setMinimumWidth(100)
        filter_layout.addWidget(self.export_btn)

        filter_layout.addStretch()
        layout.addLayout(filter_layout)

        self.sessions_table = QTableWidget()
        self.sessions_table.setColumnCount(7)
        self.sessions_table.setHorizontalHeaderLabels([
            "Date", "Topic", "Start", "Focus", "Break", "Score", "Status"
        ])
        self.sessions_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.sessions_table.setAlternatingRowColors(True)
        self.sessions_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self.sessions_table.setSelectionBehavior(QTableWidget.SelectionBehavior.SelectRows)
        layout.addWidget(self.sessions_table)

    def _add_stat(self, stats_layout: QHBoxLayout, title: str, color: str, font: QFont) -> QLabel:
        column = QVBoxLayout()
        title_label = QLabel(title)
        title_label.setStyleSheet("color: #a0a0a0; font-size: 13px;")
        column.addWidget(title_label)
        value_label = QLabel("0")
        value_label.setFont(font)
        value_label.setStyleSheet(f"color: {color}; font-size: 24px;")
        column.addWidget(value_label)
        stats_layout.addLayout(column)
        return value_label

    def _connect_signals(self):
        """Connect widget signals."""
        self.filter_btn.clicked.connect(self._apply_filter)
        self.export_btn.clicked.connect(self._export_csv)

    def refresh(self):
        """Refresh all data on the page."""
        self._update_statistics()
        self._apply_filter()

    def _update_statistics(self):
        self.today_total_label.setText(_format_minutes(self.storage.get_today_focus_minutes()))
        self.week_total_label.setText(_format_minutes(self.storage.get_week_focus_minutes()))

        progress = self.storage.get_progress()
        self.sessions_count_label.setText(str(progress.total_sessions))
        self.topics_label.setText(str(progress.topics_learned))
        self.average_score_label.setText(f"{progress.average_quiz_score:.0f}%")

    def _get_date_range(self):
        start = self.start_date.date()
        end = self.end_date.date()
        return (
            datetime(start.year(), start.month(), start.day()),
            datetime(end.year(), end.month(), end.day(), 23, 59, 59),
        )

    @Slot()
    def _apply_filter(self):
        """Load sessions for the selected date range."""
        start_date, end_date = self._get_date_range()
        sessions = self.storage.get_sessions(start_date, end_date, limit=500)

        self.sessions_table.setRowCount(len(sessions))
        for row, session in enumerate(sessions):
            values = [
                session.date,
                session.topic,
                session.started_at[11:16],
                f"{session.focus_minutes} min",
                f"{session.break_minutes} min",
                "-" if session.quiz_score is None else f"{session.quiz_score}%",
                session.status.replace("_", " ").title(),
            ]
            for col, value in enumerate(values):
                self.sessions_table.setItem(row, col, QTableWidgetItem(value))

    @Slot()
    def _export_csv(self):
        """Export the filtered sessions to a CSV file."""
        default_name = f"studyflow_sessions_{datetime.now().strftime('%Y%m%d')}.csv"
        filepath, _ = QFileDialog.getSaveFileName(
            self, "Export Sessions", default_name, "CSV Files (*.csv)"
        )
        if not filepath:
            return

        start_date, end_date = self._get_date_range()
        try:
            count = self.storage.export_to_csv(filepath, start_date, end_date)
        except (OSError, PersistenceFailure) as e:
            QMessageBox.critical(self, "Export Failed", f"Could not export sessions:\n{e}")
            return

        QMessageBox.information(
            self, "Export Complete", f"Exported {count} sessions to:\n{filepath}"
        )
