"""
Wayfarer entry point.

This file handles startup concerns (arg-parsing, logging, external service checks) and launches the
appropriate interface (terminal CLI or REST API).
"""

import argparse
import logging
import sys

from wayfarer.agent.planner_interface import PlannerError
from wayfarer.agent.session import build_session
from wayfarer.config import settings
from wayfarer.memory.vector_memory import RetrievalUnavailableError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Client libraries are chatty at INFO
    for noisy in ("httpx", "chromadb", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Wayfarer application.

    This function sets up the command-line interface, initializes logging, connects the agent to
    its external services and starts the application in either CLI or API mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the Wayfarer travel agent")
    parser.add_argument(
        "--mode",
        choices=["cli", "api"],
        type=str.lower,
        default="cli",
        help="Launch the interactive terminal or the REST API (default: cli)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Wayfarer [%s mode]", args.mode)
    logger.debug(
        "Settings: %s",
        settings.model_dump(exclude={"OPENAI_API_KEY", "ANTHROPIC_API_KEY", "SERPAPI_API_KEY"}),
    )

    try:
        session = build_session()
    except (RetrievalUnavailableError, PlannerError, ValueError) as exc:
        logger.error("Startup failed: %s", exc)
        sys.exit(1)

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from wayfarer.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(session, port=settings.API_PORT)
    else:
        from wayfarer.client.cli import run_cli  # pylint: disable=import-outside-toplevel

        run_cli(session)


if __name__ == "__main__":
    main()
