"""
Main window for StudyFlow.
Hosts the tabbed pages, the floating session timer and the tray icon.
"""

from typing import Optional
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QTabWidget,
    QSystemTrayIcon, QMenu, QApplication, QMessageBox
)
from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QIcon, QAction, QCloseEvent, QPixmap, QPainter, QColor

from studyflow.content import ContentGenerator, OfflineMaterialGenerator
from studyflow.models import HeartbeatProjection
from studyflow.session import StudySessionController
from studyflow.storage import Storage

from .floating_timer import FloatingTimer
from .history_page import HistoryPage
from .session_page import SessionPage


def create_app_icon() -> QIcon:
    """Create a simple app icon programmatically."""
    icon = QIcon()

    for size in (16, 32, 48, 64):
        pixmap = QPixmap(size, size)
        pixmap.fill(Qt.GlobalColor.transparent)

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        # Open book: two pages either side of a spine
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor("#4CAF50"))
        margin = size // 8
        painter.drawRoundedRect(margin, margin, size - 2*margin, size - 2*margin, size // 8, size // 8)

        painter.setBrush(QColor("white"))
        inner = size // 4
        half = size // 2
        painter.drawRect(inner, inner, half - inner - 1, size - 2*inner)
        painter.drawRect(half + 1, inner, half - inner - 1, size - 2*inner)

        painter.end()
        icon.addPixmap(pixmap)

    return icon


class MainWindow(QMainWindow):
    """
    Main application window with tabbed interface.
    The session controller belongs to the window, so a session keeps
    running whichever tab is shown.
    """

    def __init__(
        self,
        storage: Optional[Storage] = None,
        generator: Optional[ContentGenerator] = None
    ):
        super().__init__()

        self.storage = storage or Storage()
        self.controller = StudySessionController(
            generator or OfflineMaterialGenerator(),
            self.storage,
            settings=self.storage.get_settings(),
            parent=self
        )

        self.setWindowTitle("StudyFlow")
        self.setMinimumSize(760, 600)
        self.resize(900, 700)

        self.app_icon = create_app_icon()
        self.setWindowIcon(self.app_icon)

        self._setup_ui()
        self._setup_tray()
        self._connect_signals()

        self.history_page.refresh()

    def _setup_ui(self):
        """Set up the main UI."""
        central = QWidget()
        self.setCentralWidget(central)

        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)

        self.tabs = QTabWidget()
        self.tabs.setDocumentMode(True)

        self.session_page = SessionPage(self.storage, self.controller)
        self.history_page = HistoryPage(self.storage)

        self.tabs.addTab(self.session_page, "Study")
        self.tabs.addTab(self.history_page, "History")
        layout.addWidget(self.tabs)

        self.floating_timer = FloatingTimer()
        layout.addWidget(self.floating_timer)

    def _setup_tray(self):
        """Set up system tray icon."""
        if not QSystemTrayIcon.isSystemTrayAvailable():
            return

        self.tray_icon = QSystemTrayIcon(self.app_icon, self)
        self.tray_icon.setToolTip("StudyFlow")

        tray_menu = QMenu()

        show_action = QAction("Show", self)
        show_action.triggered.connect(self._show_session)
        tray_menu.addAction(show_action)

        self.tray_pause_action = QAction("Pause", self)
        self.tray_pause_action.triggered.connect(self.controller.toggle_pause)
        self.tray_pause_action.setEnabled(False)
        tray_menu.addAction(self.tray_pause_action)

        tray_menu.addSeparator()

        quit_action = QAction("Quit", self)
        quit_action.triggered.connect(self._quit_app)
        tray_menu.addAction(quit_action)

        self.tray_icon.setContextMenu(tray_menu)
        self.tray_icon.activated.connect(self._on_tray_activated)
        self.tray_icon.show()

    def _connect_signals(self):
        """Connect signals from various components."""
        self.controller.heartbeat.subscribe(self.floating_timer)
        self.controller.heartbeat.updated.connect(self._on_heartbeat)
        self.controller.recorder.saved.connect(self._on_record_saved)

        self.floating_timer.open_requested.connect(self._show_session)
        self.tabs.currentChanged.connect(self._on_tab_changed)
        self._on_tab_changed(self.tabs.currentIndex())

    @Slot(object)
    def _on_heartbeat(self, projection: Optional[HeartbeatProjection]):
        """Mirror the heartbeat in the tray."""
        if not hasattr(self, 'tray_icon'):
            return

        if projection is None:
            self.tray_icon.setToolTip("StudyFlow")
            self.tray_pause_action.setEnabled(False)
            self.tray_pause_action.setText("Pause")
            return

        state = "Break" if projection.is_break else "Focus"
        self.tray_icon.setToolTip(
            f"StudyFlow - {state}\n{projection.topic} {projection.format_elapsed()}"
        )
        self.tray_pause_action.setEnabled(True)
        self.tray_pause_action.setText("Resume" if projection.is_paused else "Pause")

    @Slot(str)
    def _on_record_saved(self, record_id: str):
        """Show a finished session in the history once its final write lands."""
        result = self.controller.result
        if result is None or result.id != record_id:
            return
        if self.tabs.currentWidget() == self.history_page:
            self.history_page.refresh()

    @Slot(int)
    def _on_tab_changed(self, index: int):
        """Handle tab change."""
        widget = self.tabs.widget(index)
        self.floating_timer.set_detail_visible(widget == self.session_page)
        if widget == self.history_page:
            self.history_page.refresh()

    @Slot(QSystemTrayIcon.ActivationReason)
    def _on_tray_activated(self, reason: QSystemTrayIcon.ActivationReason):
        if reason == QSystemTrayIcon.ActivationReason.DoubleClick:
            self._show_session()

    @Slot()
    def _show_session(self):
        """Show the window on the session page."""
        self.tabs.setCurrentWidget(self.session_page)
        self.show()
        self.raise_()
        self.activateWindow()

    @Slot()
    def _quit_app(self):
        self._cleanup()
        QApplication.quit()

    def closeEvent(self, event: QCloseEvent):
        """Keep a running session alive in the tray, or confirm exit."""
        if self.controller.is_in_progress:
            if hasattr(self, 'tray_icon') and self.tray_icon.isVisible():
                event.ignore()
                self.hide()
                self.tray_icon.showMessage(
                    "StudyFlow",
                    "Your session is still running. Click the tray icon to return.",
                    QSystemTrayIcon.MessageIcon.Information,
                    2000
                )
                return

            reply = QMessageBox.question(
                self,
                "Confirm Exit",
                "A study session is running. End it and exit?",
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
                QMessageBox.StandardButton.No
            )
            if reply == QMessageBox.StandardButton.No:
                event.ignore()
                return

        self._cleanup()
        event.accept()

    def _cleanup(self):
        """End the session and flush pending saves before exit."""
        self.controller.shutdown()
        self.storage.save_settings(self.controller.settings)

        if hasattr(self, 'tray_icon'):
            self.tray_icon.hide()
