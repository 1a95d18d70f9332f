# tests/test_tui_e2e.py
"""
Headless Pilot tests for the dialogs, the TUI prompter and the run screen.

The workflow itself is covered by test_workflow.py; here it is either
replaced or driven one question at a time from a worker thread.
"""
from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from textual.app import App, ComposeResult
from textual.widgets import Input, RichLog

from screens.dialogs import ChoiceScreen, ConfirmScreen, PromptScreen
from screens.run import TuiPrompter

UNSET = object()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class DialogApp(App):
    """Pushes one dialog on mount and records what it dismissed with."""

    def __init__(self, dialog=None) -> None:
        super().__init__()
        self.dialog = dialog
        self.result = UNSET

    def compose(self) -> ComposeResult:
        yield RichLog(id="run_log")

    def on_mount(self) -> None:
        if self.dialog is not None:
            self.push_screen(self.dialog, self._done)

    def _done(self, value) -> None:
        self.result = value


async def _wait_for_screen(pilot, screen_type, tries=40):
    for _ in range(tries):
        if isinstance(pilot.app.screen, screen_type):
            return
        await pilot.pause(0.05)
    raise AssertionError(f"{screen_type.__name__} never appeared")


# ---------------------------------------------------------------------------
# Dialogs
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_confirm_yes_button():
    app = DialogApp(ConfirmScreen("Apply network configuration now?"))
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.2)
        await pilot.click("#btn_yes")
        await pilot.pause(0.2)
    assert app.result is True


@pytest.mark.asyncio
async def test_confirm_escape_means_no():
    app = DialogApp(ConfirmScreen("Shutdown Proxmox VMs now?"))
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.2)
        await pilot.press("escape")
        await pilot.pause(0.2)
    assert app.result is False


@pytest.mark.asyncio
async def test_prompt_enter_accepts_default():
    app = DialogApp(PromptScreen("Enter gateway IP address", "192.168.1.1"))
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.2)
        assert pilot.app.screen.query_one("#inp_value", Input).value == "192.168.1.1"
        await pilot.press("enter")
        await pilot.pause(0.2)
    assert app.result == "192.168.1.1"


@pytest.mark.asyncio
async def test_prompt_ok_button_returns_typed_value():
    app = DialogApp(PromptScreen("Enter new IP address"))
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.2)
        pilot.app.screen.query_one("#inp_value", Input).value = "10.0.0.5"
        await pilot.click("#btn_ok")
        await pilot.pause(0.2)
    assert app.result == "10.0.0.5"


@pytest.mark.asyncio
async def test_choice_by_key_and_by_button():
    options = [("1", "Shutdown the system"), ("2", "Reboot the system"), ("3", "Exit")]

    app = DialogApp(ChoiceScreen("Select an option:", options))
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.2)
        await pilot.press("3")
        await pilot.pause(0.2)
    assert app.result == "3"

    app = DialogApp(ChoiceScreen("Select an option:", options))
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.2)
        await pilot.click("#btn_choice_2")
        await pilot.pause(0.2)
    assert app.result == "2"


# ---------------------------------------------------------------------------
# TuiPrompter (called from a worker thread, as the workflow does)
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_tui_prompter_confirm_round_trip():
    app = DialogApp()
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        prompter = TuiPrompter(app, app.query_one("#run_log", RichLog))
        loop = asyncio.get_running_loop()
        answer = loop.run_in_executor(None, prompter.confirm, "Proceed with VM shutdown?")
        await _wait_for_screen(pilot, ConfirmScreen)
        await pilot.click("#btn_yes")
        assert await asyncio.wait_for(answer, timeout=5) is True


@pytest.mark.asyncio
async def test_tui_prompter_error_shown_in_next_prompt():
    app = DialogApp()
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        prompter = TuiPrompter(app, app.query_one("#run_log", RichLog))
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, prompter.error, "'010.0.0.5' is not a valid IPv4 address.")
        answer = loop.run_in_executor(None, prompter.prompt, "Enter new IP address", "10.0.0.5")
        await _wait_for_screen(pilot, PromptScreen)
        assert pilot.app.screen.error.startswith("'010.0.0.5'")
        await pilot.pause(0.1)
        await pilot.press("enter")
        assert await asyncio.wait_for(answer, timeout=5) == "10.0.0.5"
        assert prompter._pending_error == ""


# ---------------------------------------------------------------------------
# Run screen
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_run_screen_exits_with_workflow_code(settings):
    from app import ReaddressApp

    with patch("screens.run.Workflow") as workflow_cls:
        workflow_cls.return_value.run.return_value = 1
        app = ReaddressApp(settings)
        async with app.run_test(headless=True, size=(120, 40)) as pilot:
            for _ in range(40):
                if app.return_code is not None:
                    break
                await pilot.pause(0.05)
    assert app.return_code == 1
    workflow_cls.assert_called_once()
    assert workflow_cls.call_args.kwargs["cancel"] is app.cancel_event
