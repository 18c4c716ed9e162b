"""Interactive prompts."""

from __future__ import annotations

from collections.abc import Callable


class Console:
    """Reads answers from the terminal.

    Everything that asks the operator something goes through here,
    so tests can script the answers by passing their own input
    function.
    """

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output: Callable[[str], None] = print,
    ):
        self._input = input_func
        self._output = output

    def show(self, text: str = ""):
        self._output(text)

    def ask(self, message: str) -> str:
        return self._input(f"{message} ").strip()

    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask a yes/no question until the answer is one."""
        hint = "[Y/n]" if default else "[y/N]"
        while True:
            answer = self.ask(f"{message} {hint}").lower()
            if not answer:
                return default
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            self.show("Please answer yes or no.")


class ScriptedConsole(Console):
    """Console that answers from a fixed list, for tests.

    An answer may be a callable; it runs when its prompt is reached,
    which lets a test act on the repository mid-prompt.
    """

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.prompts: list[str] = []
        self.shown: list[str] = []
        super().__init__(self._next_answer, self.shown.append)

    def _next_answer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError("no scripted answer left")
        answer = self.answers.pop(0)
        if callable(answer):
            answer = answer()
        return answer
