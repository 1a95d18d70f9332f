# screens/run.py
from __future__ import annotations
from concurrent.futures import Future, TimeoutError as FutureTimeout
from typing import Any, Optional, Sequence, Tuple

from textual import work
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.screen import Screen
from textual.widgets import Footer, RichLog, Static

from errors import Cancelled
from logger import LOG_FILE, log
from prompts import Prompter
from screens.dialogs import ChoiceScreen, ConfirmScreen, PromptScreen
from widgets.header import ReaddressHeader
from widgets.log_panel import LogPanelHandler
from workflow import Workflow

WAIT_SLICE = 0.5


class TuiPrompter(Prompter):
    """Prompter for a workflow running in a worker thread.

    Dialogs are pushed onto the app from the worker and the call blocks
    until the dialog is dismissed. If the app shuts down while a dialog is
    open the call raises ``Cancelled``.
    """

    def __init__(self, app: App, panel: RichLog) -> None:
        self.app = app
        self.panel = panel
        self._pending_error = ""

    def _call(self, callback, *args) -> Any:
        try:
            return self.app.call_from_thread(callback, *args)
        except RuntimeError as e:
            raise Cancelled("Interface closed") from e

    def _ask(self, screen) -> Any:
        answer: Future = Future()
        self._call(self.app.push_screen, screen, answer.set_result)
        while True:
            try:
                return answer.result(timeout=WAIT_SLICE)
            except FutureTimeout:
                if not self.app.is_running:
                    raise Cancelled("Interface closed")

    def confirm(self, question: str) -> bool:
        return bool(self._ask(ConfirmScreen(question)))

    def prompt(self, field: str, default: Optional[str] = None) -> str:
        error, self._pending_error = self._pending_error, ""
        answer = (self._ask(PromptScreen(field, default, error)) or "").strip()
        return answer or (default or "")

    def choose(self, question: str, options: Sequence[Tuple[str, str]]) -> str:
        return str(self._ask(ChoiceScreen(question, options)))

    def show(self, title: str, body: str) -> None:
        self._call(self.panel.write, f"\n{title}:\n{body.rstrip()}\n")

    def error(self, message: str) -> None:
        # Shown inside the next prompt dialog as well as in the log.
        self._pending_error = message
        self._call(self.panel.write, f"[ERROR] {message}")


class RunScreen(Screen):
    """Single screen hosting the whole run: status line plus log panel."""

    BINDINGS = [("ctrl+q", "app.quit", "Quit")]

    def __init__(self) -> None:
        super().__init__()
        self._handler: Optional[LogPanelHandler] = None
        self._panel: Optional[RichLog] = None

    def compose(self) -> ComposeResult:
        yield ReaddressHeader()
        with Vertical(id="content"):
            yield Static("Proxmox Network Change & VM Shutdown", classes="title")
            yield Static("Preparing…", id="status_msg", markup=False)
            yield RichLog(id="run_log", wrap=True, markup=False, highlight=False)
        yield Footer()

    def on_mount(self) -> None:
        panel = self._panel = self.query_one("#run_log", RichLog)
        status = self.query_one("#status_msg", Static)
        self._handler = LogPanelHandler(self.app, panel, status)
        log.addHandler(self._handler)
        self.run_workflow()

    def on_unmount(self) -> None:
        self.app.cancel_event.set()
        if self._handler is not None:
            log.removeHandler(self._handler)

    @work(thread=True, exclusive=True)
    def run_workflow(self) -> None:
        app = self.app
        prompter = TuiPrompter(app, self._panel)
        workflow = Workflow(prompter, app.settings, cancel=app.cancel_event)
        code = workflow.run()
        log.info("Run finished with exit code %d. Full log: %s", code, LOG_FILE)
        if app.is_running:
            app.call_from_thread(
                app.exit, None, code, f"pve-readdress finished (exit {code}). Log: {LOG_FILE}"
            )
