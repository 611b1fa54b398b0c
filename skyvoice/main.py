"""CLI entry point for the SkyVoice dialogue backend.

A terminal loop for trying the dialogue flows or the Bedrock agent
without the mobile app.  For production, use the FastAPI server
(``skyvoice/server.py``).

Usage:
    python -m skyvoice.main                      # dialogue mode (intent templates)
    python -m skyvoice.main --mode agent         # talk to the Bedrock agent
    python -m skyvoice.main --populate           # load the corpus first
    python -m skyvoice.main --debug              # show API calls
"""

from __future__ import annotations

import argparse
import json
import logging
import uuid

from dotenv import load_dotenv

from skyvoice.config import INTENT_CORPUS_DIR
from skyvoice.runtime import Runtime, build_runtime
from skyvoice.services.corpus import load_corpus

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    )
    if not debug:
        for noisy in ("httpx", "httpcore", "botocore", "urllib3"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("skyvoice").setLevel(logging.DEBUG if debug else logging.INFO)


def _reply(runtime: Runtime, mode: str, text: str, user_id: str) -> str:
    if mode == "agent":
        result = runtime.invoker.invoke(text, user_id)
        return result["response"] if result["success"] else f"[error] {result['error']}"
    result = runtime.dialogue.process(text, user_id)
    screen = result["screen_action"]
    return (
        f"{result['response_text']}\n"
        f"  intent={result['intent']} screen={screen['navigate_to']}/{screen['show_section']}"
    )


def main():
    """Run the interactive CLI loop."""
    parser = argparse.ArgumentParser(description="SkyVoice dialogue CLI")
    parser.add_argument("--debug", action="store_true", help="Show all log messages")
    parser.add_argument(
        "--mode", choices=("dialogue", "agent"), default="dialogue",
        help="Route input through the dialogue state machine or the Bedrock agent",
    )
    parser.add_argument(
        "--populate", nargs="?", const=INTENT_CORPUS_DIR, default=None, metavar="DIR",
        help="Load the labeled corpus into the intent index before chatting",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    runtime = build_runtime()
    runtime.start()
    if args.populate:
        summary = load_corpus(runtime.matcher, args.populate)
        print(json.dumps({k: summary[k] for k in ("total_processed", "total_succeeded")}))

    print("\n" + "=" * 60)
    print(f"  SkyVoice CLI ({args.mode} mode)")
    print("=" * 60)
    print("  Commands: 'quit' to exit, 'new' for a new user/session.")
    print("=" * 60 + "\n")

    user_id = f"cli-{uuid.uuid4().hex[:8]}"
    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue
            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye!")
                break
            if user_input.lower() == "new":
                runtime.sessions.end(user_id)
                user_id = f"cli-{uuid.uuid4().hex[:8]}"
                print(f"\n>> New user: {user_id}\n")
                continue

            try:
                print(f"\nAssistant: {_reply(runtime, args.mode, user_input, user_id)}\n")
            except Exception as e:
                logger.exception("Error processing message")
                print(f"\nAssistant: something went wrong: {e}\n")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
