#!/usr/bin/env python3
"""Voice Coaching Session CLI.

Typed lines stand in for finalized speech; ``/pause``, ``/resume`` and
``/quit`` drive the session lifecycle.
"""

import argparse
import asyncio
import logging
import sys

from config.catalog import CoachingCatalog
from config.settings import Settings
from llm.factory import create_llm_client, LLMProvider
from memory.sqlite_store import SQLiteSessionStore
from pipeline.request_pipeline import RequestPipeline
from schemas.session import UsageAccount
from session.state_machine import CoachingSession
from speech.recognizer import NullMicrophone, ScriptedRecognizer


async def run_session(args: argparse.Namespace, settings: Settings) -> int:
    """Create or reopen a session and run it until /quit or end of input."""
    catalog = CoachingCatalog(settings.catalog_path)
    store = SQLiteSessionStore(db_path=settings.db_path)

    api_key = settings.get_llm_api_key()
    if not api_key:
        print(f"No API key configured for {settings.llm_provider}.", file=sys.stderr)
        return 1
    llm_client = create_llm_client(
        provider=LLMProvider(settings.llm_provider),
        api_key=api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
    )
    pipeline = RequestPipeline(llm_client, settings=settings)

    account = None
    user_id = None
    if args.user_email:
        user = store.create_user(name=args.user_name, email=args.user_email, credits=args.credits)
        user_id = user.user_id
        account = UsageAccount(user_id=user.user_id, credits_remaining=user.credits)

    session_id = args.session_id or store.create_session(
        topic=args.topic,
        coaching_option=args.option,
        expert_name=args.expert,
        user_id=user_id,
    )

    session = CoachingSession(
        session_id=session_id,
        store=store,
        pipeline=pipeline,
        catalog=catalog,
        recognizer_factory=ScriptedRecognizer,
        microphone=NullMicrophone(),
        account=account,
        settings=settings,
    )
    session.on_assistant_message = lambda response: print(f"\n{session.expert.name}: {response.message.content}\n")

    await session.open()
    if session.option is None:
        print(f"Unknown coaching option: {args.option}", file=sys.stderr)
        print(f"Available: {', '.join(catalog.option_names())}", file=sys.stderr)
        return 1

    if not await session.connect():
        print(session.last_error or "Failed to connect.", file=sys.stderr)
        return 1

    greeting = session.start_conversation()
    if greeting:
        print(f"\n{session.expert.name}: {greeting.content}\n")

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "You: ")
            except EOFError:
                break

            line = line.strip()
            if not line:
                continue
            if line == "/quit":
                break
            if line == "/pause":
                await session.pause()
                print("(paused)")
                continue
            if line == "/resume":
                await session.resume()
                print("(listening)")
                continue

            recognizer = session.adapter.recognizer
            if recognizer is None or not session.can_capture():
                print(f"(not listening: {session.state.value})")
                continue
            recognizer.say(line)
            await session.wait_for_turns()
    finally:
        await session.disconnect()

    print("\nGenerating session feedback...\n")
    feedback = await session.generate_feedback()
    print(feedback)

    if session.accountant.account is not None:
        print(f"\nCredits remaining: {session.accountant.account.credits_remaining:g}")
    print(f"Session ID: {session_id}")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Voice Coaching Session - talk with an AI coach (typed input stands in for speech)"
    )
    parser.add_argument(
        "--topic",
        "-t",
        type=str,
        default="Python basics",
        help="Coaching topic (default: Python basics)"
    )
    parser.add_argument(
        "--option",
        "-o",
        type=str,
        default="Lecture on Topic",
        help="Coaching option name from the catalog (default: Lecture on Topic)"
    )
    parser.add_argument(
        "--expert",
        "-e",
        type=str,
        default="Joanna",
        help="Expert persona name (default: Joanna)"
    )
    parser.add_argument(
        "--session-id",
        type=str,
        help="Reopen an existing session instead of creating one"
    )
    parser.add_argument(
        "--user-name",
        type=str,
        default="Guest",
        help="User name for credit accounting"
    )
    parser.add_argument(
        "--user-email",
        type=str,
        help="User email; enables credit accounting when set"
    )
    parser.add_argument(
        "--credits",
        type=float,
        default=5000,
        help="Starting credit balance for a new user (default: 5000)"
    )
    parser.add_argument(
        "--provider",
        type=str,
        choices=[p.value for p in LLMProvider],
        default="openrouter",
        help="LLM provider (default: openrouter)"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default="data/coaching_sessions.db",
        help="SQLite database path"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = Settings(
        llm_provider=args.provider,
        db_path=args.db_path,
        verbose=args.verbose,
    )

    try:
        exit_code = asyncio.run(run_session(args, settings))
    except KeyboardInterrupt:
        exit_code = 130
    except Exception as e:
        print(f"Error running session: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
