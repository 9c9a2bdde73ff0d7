"""CLI entry point for the therapy practice assistant.

This provides a simple terminal-based chat interface for testing and
development. For production, use the FastAPI server
(therapy_assistant/server.py).

Usage:
    python -m therapy_assistant.main               # normal mode (quiet)
    python -m therapy_assistant.main --client 5    # answer about client 5
    python -m therapy_assistant.main --debug       # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import uuid

from dotenv import load_dotenv

from therapy_assistant.agent import QueryProcessor
from therapy_assistant.services.dashboard_client import get_dashboard_client
from therapy_assistant.services.data_services import build_http_services
from therapy_assistant.services.sessions import SessionStore

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("therapy_assistant").setLevel(logging.DEBUG if debug else logging.INFO)


def _print_response(response) -> None:
    print(f"\nAssistant: {response.content}")
    if response.suggested_follow_ups:
        print("  You could also ask:")
        for follow_up in response.suggested_follow_ups:
            print(f"   - {follow_up}")
    print()


async def _chat_loop(client_id: int | None) -> None:
    client = get_dashboard_client()
    processor = QueryProcessor(build_http_services(client))
    sessions = SessionStore()
    session_id = str(uuid.uuid4())
    logger.info("Started new session: %s", session_id)

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "You: ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye!")
                break

            if user_input.lower() == "new":
                sessions.reset(session_id)
                session_id = str(uuid.uuid4())
                print(f"\n>> New session started: {session_id[:8]}...\n")
                continue

            context = sessions.build_context(session_id, active_client_id=client_id)
            response = await processor.process_query(user_input, context)
            sessions.record_turn(session_id, user_input, response)
            _print_response(response)
    finally:
        await client.aclose()


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Therapy practice assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--client", type=int, default=None,
        help="Active client ID for client-specific questions",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Therapy Practice Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your question and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    if args.client is not None:
        print(f"  Active client: {args.client}")
    print("=" * 60 + "\n")

    try:
        asyncio.run(_chat_loop(args.client))
    except KeyboardInterrupt:
        print("\n\nGoodbye!")


if __name__ == "__main__":
    main()
