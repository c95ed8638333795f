"""
Study session page for StudyFlow.
Setup form, live timer with ambience controls, quiz and result.
"""

import mimetypes
from pathlib import Path
from typing import List, Optional
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QComboBox, QSpinBox, QGroupBox, QLineEdit, QPlainTextEdit,
    QTextBrowser, QProgressBar, QSlider, QStackedWidget, QFileDialog,
    QFormLayout, QMessageBox, QApplication
)
from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QFont

from studyflow.errors import GenerationFailure, InvalidConfiguration
from studyflow.models import (
    MAX_ATTACHMENT_BYTES, STUDY_DEPTHS, AmbienceTrack, Attachment,
    EngineMode, SessionRecord, SessionSetup, SessionStep, TimerSnapshot
)
from studyflow.session import StudySessionController
from studyflow.storage import Storage


class SessionPage(QWidget):
    """
    Detailed view of the study session.
    One stacked page per session step.
    """

    def __init__(
        self,
        storage: Storage,
        controller: StudySessionController,
        parent: Optional[QWidget] = None
    ):
        super().__init__(parent)

        self.storage = storage
        self.controller = controller

        self._attachment: Optional[Attachment] = None
        self._answers: List[int] = []
        self._question_idx = 0
        self._save_warning_shown = False

        self._setup_ui()
        self._connect_signals()
        self._load_settings()
        self._on_step_changed(controller.step)

    def _setup_ui(self):
        """Set up the UI components."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(30, 30, 30, 30)

        self.stack = QStackedWidget()
        self.setup_view = self._build_setup_view()
        self.active_view = self._build_active_view()
        self.quiz_view = self._build_quiz_view()
        self.result_view = self._build_result_view()
        for view in (self.setup_view, self.active_view, self.quiz_view, self.result_view):
            self.stack.addWidget(view)
        layout.addWidget(self.stack)

        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #FFA726; font-size: 12px;")
        layout.addWidget(self.status_label)

    def _build_setup_view(self) -> QWidget:
        view = QWidget()
        layout = QVBoxLayout(view)
        layout.setSpacing(15)

        header = QLabel("New Study Session")
        header_font = QFont()
        header_font.setPointSize(18)
        header_font.setBold(True)
        header.setFont(header_font)
        layout.addWidget(header)

        material_box = QGroupBox("Material")
        form = QFormLayout(material_box)
        self.topic_edit = QLineEdit()
        self.topic_edit.setPlaceholderText("What do you want to study?")
        form.addRow("Topic:", self.topic_edit)
        self.link_edit = QLineEdit()
        self.link_edit.setPlaceholderText("Optional reference link")
        form.addRow("Reference:", self.link_edit)

        attach_row = QHBoxLayout()
        self.attach_label = QLabel("No file")
        self.attach_btn = QPushButton("Attach...")
        self.clear_attach_btn = QPushButton("Remove")
        self.clear_attach_btn.setEnabled(False)
        attach_row.addWidget(self.attach_label, 1)
        attach_row.addWidget(self.attach_btn)
        attach_row.addWidget(self.clear_attach_btn)
        form.addRow("File:", attach_row)

        self.instructions_edit = QPlainTextEdit()
        self.instructions_edit.setPlaceholderText("Optional instructions")
        self.instructions_edit.setMaximumHeight(80)
        form.addRow("Instructions:", self.instructions_edit)

        self.depth_combo = QComboBox()
        for depth in STUDY_DEPTHS:
            self.depth_combo.addItem(depth.capitalize(), depth)
        form.addRow("Depth:", self.depth_combo)
        layout.addWidget(material_box)

        timer_box = QGroupBox("Timer")
        timer_layout = QHBoxLayout(timer_box)
        timer_layout.addWidget(QLabel("Focus:"))
        self.focus_spin = QSpinBox()
        self.focus_spin.setRange(1, 180)
        self.focus_spin.setSuffix(" min")
        timer_layout.addWidget(self.focus_spin)
        timer_layout.addWidget(QLabel("Break:"))
        self.break_spin = QSpinBox()
        self.break_spin.setRange(1, 60)
        self.break_spin.setSuffix(" min")
        timer_layout.addWidget(self.break_spin)
        timer_layout.addStretch()
        layout.addWidget(timer_box)

        self.start_btn = QPushButton("Start Session")
        self.start_btn.setMinimumHeight(45)
        self.start_btn.setStyleSheet("""
            QPushButton {
                background-color: #4CAF50;
                color: white;
                border: none;
                border-radius: 5px;
                font-size: 14px;
                font-weight: bold;
            }
            QPushButton:hover {
                background-color: #45a049;
            }
        """)
        layout.addWidget(self.start_btn)
        layout.addStretch()
        return view

    def _build_active_view(self) -> QWidget:
        view = QWidget()
        layout = QVBoxLayout(view)
        layout.setSpacing(12)

        top = QHBoxLayout()
        self.phase_label = QLabel("FOCUS")
        self.phase_label.setStyleSheet("color: #66BB6A; font-size: 20px; font-weight: bold;")
        top.addWidget(self.phase_label)
        top.addStretch()

        self.time_label = QLabel("00:00")
        time_font = QFont()
        time_font.setPointSize(36)
        time_font.setBold(True)
        self.time_label.setFont(time_font)
        top.addWidget(self.time_label)
        layout.addLayout(top)

        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 1000)
        self.progress_bar.setTextVisible(False)
        layout.addWidget(self.progress_bar)

        self.progress_label = QLabel("")
        self.progress_label.setStyleSheet("color: #a0a0a0; font-size: 13px;")
        layout.addWidget(self.progress_label)

        buttons = QHBoxLayout()
        self.phase_btn = QPushButton("Take a Break")
        self.pause_btn = QPushButton("Pause")
        self.finish_btn = QPushButton("Finish Reading")
        self.finish_btn.setStyleSheet("""
            QPushButton {
                background-color: #4CAF50;
                color: white;
            }
        """)
        for btn in (self.phase_btn, self.pause_btn, self.finish_btn):
            btn.setMinimumHeight(40)
            buttons.addWidget(btn)
        layout.addLayout(buttons)

        ambience = QHBoxLayout()
        ambience.addWidget(QLabel("Ambience:"))
        self.ambience_combo = QComboBox()
        for track in AmbienceTrack:
            self.ambience_combo.addItem(track.label, track.value)
        ambience.addWidget(self.ambience_combo)
        ambience.addWidget(QLabel("Volume:"))
        self.volume_slider = QSlider(Qt.Orientation.Horizontal)
        self.volume_slider.setRange(0, 100)
        ambience.addWidget(self.volume_slider, 1)
        layout.addLayout(ambience)

        self.notes_view = QTextBrowser()
        self.notes_view.setOpenExternalLinks(True)
        layout.addWidget(self.notes_view, 1)
        return view

    def _build_quiz_view(self) -> QWidget:
        view = QWidget()
        layout = QVBoxLayout(view)
        layout.setSpacing(12)

        self.quiz_progress_label = QLabel("")
        self.quiz_progress_label.setStyleSheet("color: #a0a0a0;")
        layout.addWidget(self.quiz_progress_label)

        self.question_label = QLabel("")
        self.question_label.setWordWrap(True)
        self.question_label.setStyleSheet("font-size: 16px; font-weight: bold;")
        layout.addWidget(self.question_label)

        self.options_layout = QVBoxLayout()
        layout.addLayout(self.options_layout)
        layout.addStretch()

        self.quiz_end_btn = QPushButton("End Without Finishing")
        layout.addWidget(self.quiz_end_btn)
        return view

    def _build_result_view(self) -> QWidget:
        view = QWidget()
        layout = QVBoxLayout(view)
        layout.setSpacing(12)

        self.result_title = QLabel("Session Complete")
        self.result_title.setStyleSheet("font-size: 20px; font-weight: bold;")
        layout.addWidget(self.result_title)

        self.score_label = QLabel("")
        self.score_label.setStyleSheet("color: #66BB6A; font-size: 48px; font-weight: bold;")
        layout.addWidget(self.score_label)

        self.summary_label = QLabel("")
        self.summary_label.setStyleSheet("color: #a0a0a0; font-size: 14px;")
        layout.addWidget(self.summary_label)

        self.new_session_btn = QPushButton("New Session")
        self.new_session_btn.setMinimumHeight(40)
        layout.addWidget(self.new_session_btn)
        layout.addStretch()
        return view

    def _connect_signals(self):
        """Connect widget and controller signals."""
        self.controller.step_changed.connect(self._on_step_changed)
        self.controller.engine.changed.connect(self._on_timer_changed)
        self.controller.result_ready.connect(self._on_result_ready)
        self.controller.recorder.save_failed.connect(self._on_save_failed)
        self.controller.recorder.saved.connect(self._on_saved)
        self.controller.ambience.playback_unavailable.connect(self._on_playback_unavailable)
        self.controller.ambience.track_changed.connect(self._on_track_changed)

        self.attach_btn.clicked.connect(self._on_attach_clicked)
        self.clear_attach_btn.clicked.connect(self._on_clear_attachment)
        self.start_btn.clicked.connect(self._on_start_clicked)
        self.phase_btn.clicked.connect(self.controller.toggle_phase)
        self.pause_btn.clicked.connect(self.controller.toggle_pause)
        self.finish_btn.clicked.connect(self.controller.finish_reading)
        self.ambience_combo.activated.connect(self._on_ambience_chosen)
        self.volume_slider.valueChanged.connect(self._on_volume_changed)
        self.volume_slider.sliderReleased.connect(self._save_volume)
        self.quiz_end_btn.clicked.connect(self.controller.end_session)
        self.new_session_btn.clicked.connect(self.controller.reset)

    def _load_settings(self):
        """Load defaults from storage."""
        settings = self.controller.settings
        self.focus_spin.setValue(settings.default_focus_minutes)
        self.break_spin.setValue(settings.default_break_minutes)
        index = self.depth_combo.findData(settings.default_depth)
        if index >= 0:
            self.depth_combo.setCurrentIndex(index)
        self.volume_slider.blockSignals(True)
        self.volume_slider.setValue(int(round(settings.ambience_volume * 100)))
        self.volume_slider.blockSignals(False)

    # ----- Setup -----

    @Slot()
    def _on_attach_clicked(self):
        path, _ = QFileDialog.getOpenFileName(self, "Attach Study Material")
        if not path:
            return
        file_path = Path(path)
        if file_path.stat().st_size > MAX_ATTACHMENT_BYTES:
            QMessageBox.warning(self, "File Too Large", "The maximum file size is 10 MB.")
            return
        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        self._attachment = Attachment(file_path.name, mime_type, file_path.read_bytes())
        self.attach_label.setText(file_path.name)
        self.clear_attach_btn.setEnabled(True)
        if not self.topic_edit.text().strip():
            self.topic_edit.setText(self._attachment.stem)

    @Slot()
    def _on_clear_attachment(self):
        self._attachment = None
        self.attach_label.setText("No file")
        self.clear_attach_btn.setEnabled(False)

    @Slot()
    def _on_start_clicked(self):
        setup = SessionSetup(
            topic=self.topic_edit.text(),
            reference_link=self.link_edit.text().strip(),
            attachment=self._attachment,
            instructions=self.instructions_edit.toPlainText().strip(),
            depth=self.depth_combo.currentData(),
            focus_minutes=self.focus_spin.value(),
            break_minutes=self.break_spin.value(),
        )
        self._set_status("")

        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            self.controller.begin(setup)
        except InvalidConfiguration as e:
            QMessageBox.warning(self, "Cannot Start", str(e))
            return
        except GenerationFailure as e:
            QMessageBox.critical(self, "Generation Failed", str(e))
            return
        finally:
            QApplication.restoreOverrideCursor()

        settings = self.controller.settings
        settings.default_focus_minutes = setup.focus_minutes
        settings.default_break_minutes = setup.break_minutes
        settings.default_depth = setup.depth
        self.storage.save_settings(settings)

    # ----- Active -----

    @Slot(object)
    def _on_step_changed(self, step: SessionStep):
        views = {
            SessionStep.SETUP: self.setup_view,
            SessionStep.GENERATING: self.setup_view,
            SessionStep.ACTIVE: self.active_view,
            SessionStep.QUIZ: self.quiz_view,
            SessionStep.RESULT: self.result_view,
        }
        self.stack.setCurrentWidget(views[step])
        self.start_btn.setEnabled(step == SessionStep.SETUP)

        if step == SessionStep.ACTIVE:
            self.notes_view.setMarkdown(self.controller.notes)
            self.ambience_combo.setCurrentIndex(0)
            self._set_status("")
        elif step == SessionStep.QUIZ:
            self._answers = []
            self._question_idx = 0
            self._show_question()
        elif step == SessionStep.SETUP:
            self._on_clear_attachment()
            self.topic_edit.clear()
            self.link_edit.clear()
            self.instructions_edit.clear()

    @Slot(object)
    def _on_timer_changed(self, snapshot: TimerSnapshot):
        if snapshot.mode != EngineMode.ACTIVE:
            return

        if snapshot.is_break:
            color, text = "#42A5F5", "BREAK"
        else:
            color, text = "#66BB6A", "FOCUS"
        if snapshot.is_overtime:
            color, text = "#f44336", f"{text} - OVERTIME"
        if not snapshot.running:
            color, text = "#FFA726", "PAUSED"

        self.phase_label.setText(text)
        self.phase_label.setStyleSheet(f"color: {color}; font-size: 20px; font-weight: bold;")
        self.time_label.setText(snapshot.format_remaining())
        self.time_label.setStyleSheet(f"color: {color};")
        self.progress_bar.setValue(int(snapshot.progress * 1000))

        focus_min = snapshot.cumulative_focus_seconds // 60
        break_min = snapshot.cumulative_break_seconds // 60
        self.progress_label.setText(
            f"Studied {focus_min} min, rested {break_min} min "
            f"({snapshot.progress * 100:.0f}% of this phase)"
        )
        self.phase_btn.setText("Back to Focus" if snapshot.is_break else "Take a Break")
        self.pause_btn.setText("Resume" if not snapshot.running else "Pause")

    @Slot(int)
    def _on_ambience_chosen(self, index: int):
        self.controller.select_ambience(AmbienceTrack(self.ambience_combo.itemData(index)))

    @Slot(object)
    def _on_track_changed(self, track: AmbienceTrack):
        index = self.ambience_combo.findData(track.value)
        if index >= 0:
            self.ambience_combo.setCurrentIndex(index)

    @Slot(int)
    def _on_volume_changed(self, value: int):
        self.controller.set_volume(value / 100)

    @Slot()
    def _save_volume(self):
        self.storage.save_settings(self.controller.settings)

    @Slot(object, str)
    def _on_playback_unavailable(self, track: AmbienceTrack, message: str):
        self._set_status(f"{track.label} ambience unavailable: {message}")

    @Slot(str, str)
    def _on_save_failed(self, record_id: str, message: str):
        if not self.controller.recorder.is_open:
            text = (
                f"Result not saved yet ({message}). "
                "It will be saved again before the next session or on exit."
            )
        else:
            text = f"Progress not saved yet ({message}). Will retry."
        self._set_status(text, save_warning=True)

    @Slot(str)
    def _on_saved(self, record_id: str):
        # Only a save warning is cleared; ambience notices stay
        if self._save_warning_shown:
            self._set_status("")

    def _set_status(self, text: str, save_warning: bool = False):
        self._save_warning_shown = save_warning
        self.status_label.setText(text)

    # ----- Quiz -----

    def _show_question(self):
        quiz = self.controller.quiz
        question = quiz[self._question_idx]
        self.quiz_progress_label.setText(f"Question {self._question_idx + 1} of {len(quiz)}")
        self.question_label.setText(question.question)

        while self.options_layout.count():
            item = self.options_layout.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()
        for idx, option in enumerate(question.options):
            btn = QPushButton(option)
            btn.setMinimumHeight(36)
            btn.clicked.connect(lambda _checked=False, i=idx: self._on_answer(i))
            self.options_layout.addWidget(btn)

    def _on_answer(self, option_idx: int):
        self._answers.append(option_idx)
        if self._question_idx < len(self.controller.quiz) - 1:
            self._question_idx += 1
            self._show_question()
        else:
            self.controller.submit_quiz(self._answers)

    # ----- Result -----

    @Slot(object)
    def _on_result_ready(self, record: SessionRecord):
        if record.quiz_score is None:
            self.score_label.setText("")
            self.result_title.setText("Session Saved")
        else:
            self.score_label.setText(f"{record.quiz_score}%")
            self.result_title.setText("Quiz Complete")
        self.summary_label.setText(
            f"{record.topic}: {record.focus_minutes} min focus, "
            f"{record.break_minutes} min break"
        )
