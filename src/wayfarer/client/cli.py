"""Terminal front end: one line in, one answer (or failure notice) out."""

from __future__ import annotations

import logging
from typing import Tuple

from wayfarer.agent.agent_loop import (
    AgentSession,
    TurnFailedError,
)
from wayfarer.common import (
    AnsiColors,
    colored_print,
    framed_print,
)

logger = logging.getLogger(__name__)

EXIT_WORDS = {"exit", "quit"}


def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def run_cli(session: AgentSession) -> None:
    """Feed user lines into *session* until the exit word, EOF or Ctrl+C."""
    colored_print("\n✈️  Wayfarer travel assistant - type 'exit' to quit.", AnsiColors.GREEN)
    while True:
        colored_print('\nEnter your query (or type "exit" to quit): ', AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok or user_msg.lower() in EXIT_WORDS:
            colored_print("Goodbye!", AnsiColors.GREEN)
            break
        if not user_msg:
            continue

        colored_print("\n...Processing...", AnsiColors.YELLOW)
        try:
            answer = session.handle_turn(user_msg)
        except TurnFailedError as exc:
            logger.debug("Turn failed (%s): %s", exc.kind.value, exc.message)
            colored_print(f"⚠️ {exc.message}", AnsiColors.RED)
            if not exc.kind.fatal:
                colored_print(
                    "Last query was not processed correctly and was removed from memory.",
                    AnsiColors.RED,
                )
            continue

        framed_print("ANSWER", answer)
