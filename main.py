#!/usr/bin/env python3
"""
StudyFlow - a personal study session tracker.

Declare a topic, read the generated material against a focus/break
guideline timer with optional ambience, answer the quiz and keep the
result. A floating timer follows you to other screens while a session
runs.

Usage:
    pip install -e .
    python main.py
"""

import logging
import sys
import signal
from PySide6.QtWidgets import QApplication
from PySide6.QtCore import Qt

logger = logging.getLogger("studyflow")


STYLESHEET = """
    QMainWindow, QWidget {
        background-color: #1e1e1e;
        color: #e0e0e0;
    }
    QTabBar::tab {
        background-color: #2d2d2d;
        color: #b0b0b0;
        padding: 12px 25px;
        margin-right: 2px;
        border-top-left-radius: 6px;
        border-top-right-radius: 6px;
    }
    QTabBar::tab:selected {
        background-color: #252525;
        color: #ffffff;
        font-weight: bold;
    }
    QGroupBox {
        font-weight: bold;
        border: 1px solid #404040;
        border-radius: 8px;
        margin-top: 12px;
        padding-top: 12px;
        background-color: #2a2a2a;
    }
    QGroupBox::title {
        subcontrol-origin: margin;
        left: 12px;
        padding: 0 8px;
        color: #4CAF50;
    }
    QLineEdit, QPlainTextEdit, QTextBrowser, QComboBox, QSpinBox, QDateEdit {
        padding: 8px;
        border: 1px solid #404040;
        border-radius: 5px;
        background-color: #2d2d2d;
        color: #ffffff;
    }
    QLineEdit:focus, QPlainTextEdit:focus, QComboBox:focus, QSpinBox:focus {
        border-color: #4CAF50;
    }
    QPushButton {
        padding: 10px 18px;
        border-radius: 5px;
        background-color: #404040;
        color: #ffffff;
        font-weight: bold;
        border: none;
    }
    QPushButton:hover {
        background-color: #505050;
    }
    QPushButton:disabled {
        background-color: #2d2d2d;
        color: #606060;
    }
    QProgressBar {
        border: none;
        border-radius: 4px;
        background-color: #2d2d2d;
        max-height: 8px;
    }
    QProgressBar::chunk {
        border-radius: 4px;
        background-color: #4CAF50;
    }
    QTableWidget {
        border: 1px solid #404040;
        gridline-color: #353535;
        background-color: #252525;
    }
    QHeaderView::section {
        background-color: #2d2d2d;
        color: #ffffff;
        padding: 10px;
        border: none;
        border-bottom: 2px solid #4CAF50;
    }
"""


def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )


def setup_exception_handling():
    """Log unhandled exceptions instead of losing them in the event loop."""
    def exception_hook(exctype, value, traceback):
        logger.critical("Unhandled exception", exc_info=(exctype, value, traceback))

    sys.excepthook = exception_hook


def setup_signal_handlers(app: QApplication):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        logger.info("Received signal %s, shutting down", signum)
        app.quit()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main():
    """Main entry point for StudyFlow."""
    setup_logging()
    setup_exception_handling()

    QApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )

    app = QApplication(sys.argv)
    app.setApplicationName("StudyFlow")
    app.setApplicationDisplayName("StudyFlow")
    app.setOrganizationName("StudyFlow")
    app.setStyle("Fusion")
    app.setStyleSheet(STYLESHEET)

    setup_signal_handlers(app)

    from ui.main_window import MainWindow
    window = MainWindow()
    app.aboutToQuit.connect(window.controller.shutdown)
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
