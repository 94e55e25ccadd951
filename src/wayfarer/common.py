"""Terminal output helpers shared by the front ends."""

from enum import Enum
from typing import Any


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"

    def wrap(self, text: str) -> str:
        """Return *text* wrapped in this color and an ANSI reset."""
        return f"{self.value}{text}\033[0m"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(color.wrap(text), *args, **kwargs)


def framed_print(title: str, text: str, color: AnsiColors = AnsiColors.YELLOW) -> None:
    """Print *text* between two rules, the first one carrying *title*."""
    header = f"=== {title} ==="
    colored_print(f"\n{header}", color)
    print(text)
    colored_print("=" * len(header), color)
