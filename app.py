# app.py
import threading

from textual.app import App

from config import Settings
from logger import log


class ReaddressApp(App):
    """Proxmox host re-addressing and VM drain."""

    TITLE = "pve-readdress"

    CSS = """
    Screen {
        background: $surface;
    }
    .title {
        text-style: bold;
        color: $accent;
        margin-bottom: 1;
    }
    #content {
        margin: 1 2;
    }
    #status_msg {
        color: $warning;
        margin-bottom: 1;
    }
    #run_log {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.settings = settings
        self.cancel_event = threading.Event()
        log.info("ReaddressApp started")

    async def on_mount(self) -> None:
        from screens.run import RunScreen
        await self.push_screen(RunScreen())
