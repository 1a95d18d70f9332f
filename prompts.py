# prompts.py
from __future__ import annotations
import re
import sys
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence, Tuple, TextIO

from errors import Cancelled

YES_RE = re.compile(r"^[Yy][Ee]?[Ss]?$")


def is_yes(answer: str) -> bool:
    return bool(YES_RE.match(answer.strip()))


class Prompter(ABC):
    """Operator interaction used by the workflow. Every call blocks."""

    @abstractmethod
    def confirm(self, question: str) -> bool:
        ...

    @abstractmethod
    def prompt(self, field: str, default: Optional[str] = None) -> str:
        """Return the answer, or `default` (or "") when left empty."""

    @abstractmethod
    def choose(self, question: str, options: Sequence[Tuple[str, str]]) -> str:
        """Offer (key, label) options; return the raw answer, unvalidated."""

    @abstractmethod
    def show(self, title: str, body: str) -> None:
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        ...


class ConsolePrompter(Prompter):
    """Line-based prompts on stdin/stdout for --plain mode."""

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        out: TextIO = sys.stdout,
    ) -> None:
        self._input_fn = input_fn
        self.out = out

    def _input(self, text: str) -> str:
        try:
            return self._input_fn(text)
        except EOFError:
            raise Cancelled("Input closed")

    def _print(self, text: str = "") -> None:
        print(text, file=self.out, flush=True)

    def confirm(self, question: str) -> bool:
        return is_yes(self._input(f"{question} (yes/no): "))

    def prompt(self, field: str, default: Optional[str] = None) -> str:
        suffix = f" [{default}]" if default else ""
        answer = self._input(f"{field}{suffix}: ").strip()
        return answer or (default or "")

    def choose(self, question: str, options: Sequence[Tuple[str, str]]) -> str:
        self._print()
        self._print(question)
        for key, label in options:
            self._print(f"{key}) {label}")
        self._print()
        keys = "/".join(k for k, _ in options)
        return self._input(f"Enter your choice ({keys}): ").strip()

    def show(self, title: str, body: str) -> None:
        self._print()
        self._print(f"{title}:")
        self._print("-" * 40)
        self._print(body.rstrip("\n"))
        self._print("-" * 40)
        self._print()

    def error(self, message: str) -> None:
        self._print(f"[ERROR] {message}")
