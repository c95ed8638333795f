# UI module for StudyFlow application
from .main_window import MainWindow
from .session_page import SessionPage
from .history_page import HistoryPage
from .floating_timer import FloatingTimer

__all__ = ['MainWindow', 'SessionPage', 'HistoryPage', 'FloatingTimer']
