"""
Floating timer widget for StudyFlow.
Condensed, non-interactive summary of the running session shown on
screens other than the study session itself.
"""

from typing import Optional
from PySide6.QtWidgets import QFrame, QHBoxLayout, QLabel, QPushButton, QWidget
from PySide6.QtCore import Qt, Signal, Slot

from studyflow.models import HeartbeatProjection


class FloatingTimer(QFrame):
    """
    Heartbeat listener.

    Hidden when no session runs, and also while the detailed session
    view is the one on screen.
    """

    # Emitted when the user wants to go back to the session view
    open_requested = Signal()

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self._projection: Optional[HeartbeatProjection] = None
        self._detail_visible = False

        self._setup_ui()
        self._refresh_visibility()

    def _setup_ui(self):
        self.setObjectName("floatingTimer")
        self.setStyleSheet("""
            QFrame#floatingTimer {
                background-color: #2a2a2a;
                border: 1px solid #404040;
                border-radius: 8px;
            }
        """)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(12, 6, 12, 6)
        layout.setSpacing(12)

        self.state_label = QLabel("FOCUS")
        self.state_label.setStyleSheet("color: #66BB6A; font-weight: bold;")
        layout.addWidget(self.state_label)

        self.topic_label = QLabel("")
        self.topic_label.setStyleSheet("color: #e0e0e0;")
        layout.addWidget(self.topic_label, 1)

        self.time_label = QLabel("0:00")
        self.time_label.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        self.time_label.setStyleSheet("color: #ffffff; font-size: 16px; font-weight: bold;")
        layout.addWidget(self.time_label)

        self.open_btn = QPushButton("Open")
        self.open_btn.clicked.connect(self.open_requested)
        layout.addWidget(self.open_btn)

    @property
    def projection(self) -> Optional[HeartbeatProjection]:
        return self._projection

    @Slot(object)
    def on_heartbeat(self, projection: Optional[HeartbeatProjection]):
        self._projection = projection
        if projection is not None:
            self.topic_label.setText(projection.topic)
            self.time_label.setText(projection.format_elapsed())
            if projection.is_paused:
                color, text = "#FFA726", "PAUSED"
            elif projection.is_break:
                color, text = "#42A5F5", "BREAK"
            else:
                color, text = "#66BB6A", "FOCUS"
            self.state_label.setText(text)
            self.state_label.setStyleSheet(f"color: {color}; font-weight: bold;")
        self._refresh_visibility()

    def set_detail_visible(self, visible: bool):
        """Told by the window whether the session view is on screen."""
        self._detail_visible = visible
        self._refresh_visibility()

    def _refresh_visibility(self):
        self.setVisible(self._projection is not None and not self._detail_visible)
