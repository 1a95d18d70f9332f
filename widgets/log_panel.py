# widgets/log_panel.py
from __future__ import annotations
import logging
import threading
from typing import Optional

from textual.app import App
from textual.widgets import RichLog, Static

PANEL_FORMAT = "[%(levelname)s] %(message)s"


class LogPanelHandler(logging.Handler):
    """Mirror log records into a RichLog, from any thread.

    Records whose message starts with "Step " also update the status line.
    """

    def __init__(self, app: App, panel: RichLog, status: Optional[Static] = None) -> None:
        super().__init__(logging.INFO)
        self.app = app
        self.panel = panel
        self.status = status
        self._ui_thread = threading.get_ident()
        self.setFormatter(logging.Formatter(PANEL_FORMAT))

    def _write(self, text: str, step: Optional[str]) -> None:
        self.panel.write(text)
        if step and self.status is not None:
            self.status.update(step)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = self.format(record)
            message = record.getMessage()
            step = message if message.startswith("Step ") else None
            if threading.get_ident() == self._ui_thread:
                self._write(text, step)
            elif self.app.is_running:
                self.app.call_from_thread(self._write, text, step)
        except Exception:
            self.handleError(record)
