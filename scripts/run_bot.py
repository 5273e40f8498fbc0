#!/usr/bin/env python3
"""
Run the face quiz bot in a Playwright-driven Chromium window.

Opens the quiz page, restores learned knowledge, and plays rounds until
--duration elapses, `quit` is typed, or Ctrl-C. Log in / start the quiz in
the browser window; the bot reacts as soon as images appear.

While running, type a command and press Enter:
    learning    switch to learning mode
    guessing    switch to guessing mode
    stop        pause the bot (knowledge is kept)
    stats       database and session totals
    progress    recently learned people
    debug       mode, hash cache and round state
    clear yes   wipe all learned data
    quit        stop and exit

Usage:
    python scripts/run_bot.py --url https://example.com/quiz --mode learning
    python scripts/run_bot.py --url https://example.com/quiz --mode guessing --duration 600
"""

import argparse
import asyncio
import logging
import sys
import threading
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from facequiz import config, reporting
from facequiz.persistence import JsonKnowledgeStore
from facequiz.session import Mode, QuizSession

logger = logging.getLogger("facequiz.run_bot")

HELP_TEXT = "Commands: learning, guessing, stop, stats, progress, debug, clear yes, quit"


async def handle_command(session: QuizSession, line: str):
    """
    Run one control command against session.

    Returns:
        Text to print, or None if the command produced no output
    """
    words = line.strip().lower().split()
    if not words:
        return None
    command, args = words[0], words[1:]

    if command == "learning":
        await session.set_mode(Mode.LEARNING)
    elif command == "guessing":
        await session.set_mode(Mode.GUESSING)
    elif command == "stop":
        await session.stop()
    elif command == "stats":
        return reporting.format_stats(session.get_stats())
    elif command == "progress":
        return reporting.format_progress(session.progress())
    elif command == "debug":
        return reporting.format_debug(session.debug_info())
    elif command == "clear":
        if args != ["yes"]:
            return "This deletes all learned data. Type 'clear yes' to confirm."
        await session.reset_knowledge()
        return "All data cleared"
    else:
        return HELP_TEXT
    return None


async def command_loop(session: QuizSession, lines: asyncio.Queue, done: asyncio.Event) -> None:
    """Apply commands from lines until `quit` (sets done) or end of input."""
    while True:
        line = await lines.get()
        if line is None:
            return
        if line.strip().lower() == "quit":
            done.set()
            return
        output = await handle_command(session, line)
        if output:
            print(output)


def start_stdin_reader(loop, lines: asyncio.Queue, stream=None) -> threading.Thread:
    """Feed stdin lines into lines from a daemon thread; None marks EOF."""
    stream = stream or sys.stdin

    def pump():
        for line in stream:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        loop.call_soon_threadsafe(lines.put_nowait, None)

    thread = threading.Thread(target=pump, name="stdin-commands", daemon=True)
    thread.start()
    return thread


async def run(url: str, mode: Mode, store_path: Path, headless: bool, duration=None) -> dict:
    """
    Play the quiz until duration seconds pass (forever if None) or `quit`.

    Returns:
        Final QuizSession.get_stats() dict
    """
    from playwright.async_api import async_playwright

    from facequiz.browser import PlaywrightImageLoader, PlaywrightQuizPage

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        try:
            page = await browser.new_page()
            await page.goto(url, wait_until="domcontentloaded")

            session = QuizSession.create(
                PlaywrightQuizPage(page),
                store=JsonKnowledgeStore(store_path),
                loader=PlaywrightImageLoader(page),
            )
            logger.info(f"BOT STARTED | Database: {session.knowledge.people_count} people loaded")
            await session.start(mode)
            print(HELP_TEXT)

            lines = asyncio.Queue()
            done = asyncio.Event()
            start_stdin_reader(asyncio.get_running_loop(), lines)
            commands = asyncio.create_task(command_loop(session, lines, done))

            try:
                await asyncio.wait_for(done.wait(), timeout=duration)
            except asyncio.TimeoutError:
                pass
            finally:
                commands.cancel()
                await session.stop()
                print(reporting.format_stats(session.get_stats()))
                print(reporting.format_progress(session.progress()))

            return session.get_stats()
        finally:
            await browser.close()


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Play the face quiz",
        epilog=HELP_TEXT,
    )
    parser.add_argument(
        "--url",
        default=config.QUIZ_URL,
        help="Quiz page URL (default: $QUIZ_URL)",
    )
    parser.add_argument(
        "--mode",
        choices=["learning", "guessing"],
        default="guessing",
        help="learning: poll and learn every round; guessing: react to changes",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=Path(config.STORE_PATH),
        help=f"Knowledge file (default: {config.STORE_PATH})",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until quit or Ctrl-C)",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        default=config.HEADLESS,
        help="Run the browser without a window",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s: %(message)s")

    if not args.url:
        print("ERROR: no quiz URL (pass --url or set QUIZ_URL)")
        sys.exit(1)

    mode = Mode[args.mode.upper()]
    try:
        asyncio.run(run(args.url, mode, args.store, args.headless, args.duration))
    except KeyboardInterrupt:
        print("\nInterrupted")


if __name__ == "__main__":
    main()
