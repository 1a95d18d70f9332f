# screens/dialogs.py
"""Modal dialogs the workflow uses to ask the operator something.

Each dialog dismisses with its answer; ``TuiPrompter`` pushes them from the
worker thread and blocks until the callback fires.
"""
from __future__ import annotations
from typing import Optional, Sequence, Tuple

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

DIALOG_CSS = """
    {name} {{
        align: center middle;
    }}
    {name} > #dialog {{
        width: 76;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }}
    {name} #dialog_buttons {{
        height: auto;
        align: center middle;
        margin-top: 1;
    }}
    {name} Button {{
        margin: 0 1;
    }}
    {name} #err_msg {{
        color: $error;
    }}
"""


class ConfirmScreen(ModalScreen[bool]):
    """Yes/No question. Escape answers No."""

    DEFAULT_CSS = DIALOG_CSS.format(name="ConfirmScreen")

    BINDINGS = [
        ("y", "yes", "Yes"),
        ("n", "no", "No"),
        ("escape", "no", "No"),
    ]

    def __init__(self, question: str) -> None:
        super().__init__()
        self.question = question

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog"):
            yield Static(self.question, id="question", markup=False)
            with Horizontal(id="dialog_buttons"):
                yield Button("Yes", id="btn_yes", variant="success")
                yield Button("No", id="btn_no", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "btn_yes")

    def action_yes(self) -> None:
        self.dismiss(True)

    def action_no(self) -> None:
        self.dismiss(False)


class PromptScreen(ModalScreen[str]):
    """Single-line text entry, pre-filled with the default."""

    DEFAULT_CSS = DIALOG_CSS.format(name="PromptScreen")

    def __init__(self, field: str, default: Optional[str] = None, error: str = "") -> None:
        super().__init__()
        self.field = field
        self.default = default or ""
        self.error = error

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog"):
            yield Label(f"{self.field}:", id="field_label", markup=False)
            yield Input(value=self.default, id="inp_value")
            yield Static(self.error, id="err_msg", markup=False)
            with Horizontal(id="dialog_buttons"):
                yield Button("OK", id="btn_ok", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#inp_value", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_ok":
            self.dismiss(self.query_one("#inp_value", Input).value)


class ChoiceScreen(ModalScreen[str]):
    """One button per option; the option key can also be typed."""

    DEFAULT_CSS = DIALOG_CSS.format(name="ChoiceScreen") + """
    ChoiceScreen Button {
        width: 100%;
        margin: 0 0 1 0;
    }
"""

    def __init__(self, question: str, options: Sequence[Tuple[str, str]]) -> None:
        super().__init__()
        self.question = question
        self.options = list(options)

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog"):
            yield Static(self.question, id="question", markup=False)
            with Vertical(id="dialog_buttons"):
                for key, label in self.options:
                    yield Button(f"{key}. {label}", id=f"btn_choice_{key}")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id or ""
        if button_id.startswith("btn_choice_"):
            self.dismiss(button_id[len("btn_choice_"):])

    def on_key(self, event: events.Key) -> None:
        if event.character and event.character in {k for k, _ in self.options}:
            event.stop()
            self.dismiss(event.character)
