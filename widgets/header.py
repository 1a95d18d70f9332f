# widgets/header.py
from __future__ import annotations
import pyfiglet
from textual.widgets import Static

BANNER = pyfiglet.figlet_format("PVE Readdress", font="small")


class ReaddressHeader(Static):
    """Full-width ASCII-art header shown above the run log."""

    DEFAULT_CSS = """
    ReaddressHeader {
        color: #f97316;
        text-style: bold;
        width: 100%;
        padding: 0 2;
    }
    """

    def __init__(self) -> None:
        super().__init__(BANNER, markup=False)
