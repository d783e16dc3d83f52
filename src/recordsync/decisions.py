"""Sources of yes/no answers for repair candidates."""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.prompt import Confirm


class DecisionSource(Protocol):
    """Answers whether a repair candidate should be applied."""

    interactive: bool

    def ask(self, question: str, default: bool) -> bool: ...


class FixedAnswer:
    """Always gives the same answer without prompting.

    ``FixedAnswer(True)`` is automatic repair, ``FixedAnswer(False)`` is
    report-only.
    """

    interactive = False

    def __init__(self, answer: bool) -> None:
        self.answer = answer

    def ask(self, question: str, default: bool) -> bool:
        return self.answer


class PromptDecision:
    """Asks a human on the terminal."""

    interactive = True

    def __init__(self, console: Console | None = None, default: bool = False) -> None:
        self._console = console or Console()
        self.default = default

    def ask(self, question: str, default: bool | None = None) -> bool:
        return Confirm.ask(
            question,
            console=self._console,
            default=self.default if default is None else default,
        )
