#!/usr/bin/env python3
"""
Inspect and maintain the learned face/name knowledge.

Usage:
    python scripts/manage_knowledge.py stats
    python scripts/manage_knowledge.py progress --limit 10
    python scripts/manage_knowledge.py show <key>
    python scripts/manage_knowledge.py export knowledge_backup.json
    python scripts/manage_knowledge.py reset            # asks for confirmation
    python scripts/manage_knowledge.py reset --yes      # no prompt
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from facequiz import config
from facequiz.knowledge import KnowledgeBase
from facequiz.persistence import JsonKnowledgeStore

DEFAULT_STORE_PATH = Path(config.STORE_PATH)


def load_knowledge(path: Path) -> KnowledgeBase:
    """Load knowledge from file (empty if missing or unreadable)."""
    return KnowledgeBase(JsonKnowledgeStore(path))


def cmd_stats(args):
    """Show database totals."""
    knowledge = load_knowledge(args.store)
    people = knowledge.people_count
    negatives = knowledge.negative_count

    print("\nDATABASE STATS:")
    print(f"   People in database: {people}")
    print(f"   Negative associations: {negatives}")
    print(f"   Average negatives per image: {negatives / max(1, people):.1f}")


def cmd_progress(args):
    """Show the most recently learned people."""
    knowledge = load_knowledge(args.store)

    print(f"\nCURRENT PROGRESS: {knowledge.people_count} people in database")
    recent = knowledge.recent_assignments(args.limit)
    if not recent:
        print("Nothing learned yet.")
        return

    print("Recently learned:")
    for key, name in recent:
        print(f"   {name} -> {key}")


def cmd_show(args):
    """Show what is known about one image key."""
    knowledge = load_knowledge(args.store)

    name = knowledge.lookup(args.key)
    negatives = knowledge.exclusions_for(args.key)
    if name is None and not negatives:
        print(f"Error: Key not found: {args.key}")
        sys.exit(1)

    print(f"\n{'=' * 60}")
    print(f"Key: {args.key}")
    print(f"{'=' * 60}")
    print(f"Name:       {name or '(unknown)'}")
    print()
    print(f"Excluded ({len(negatives)}):")
    for negative in sorted(negatives):
        print(f"  - {negative}")


def cmd_export(args):
    """Write a plain {assignment, excluded} copy to a file."""
    knowledge = load_knowledge(args.store)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(knowledge.snapshot(), f, indent=2, ensure_ascii=False)

    print(f"Exported {knowledge.people_count} people to {args.output}")


def cmd_reset(args):
    """Delete all learned data."""
    if not args.yes:
        answer = input("Clear all learned data? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Aborted.")
            return

    knowledge = load_knowledge(args.store)
    people = knowledge.people_count
    knowledge.reset()
    print(f"All data cleared ({people} people removed)")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Manage learned face/name knowledge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=DEFAULT_STORE_PATH,
        help=f"Path to knowledge file (default: {DEFAULT_STORE_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    stats_parser = subparsers.add_parser("stats", help="Show database totals")
    stats_parser.set_defaults(func=cmd_stats)

    progress_parser = subparsers.add_parser("progress", help="Show recent learning")
    progress_parser.add_argument(
        "--limit",
        type=int,
        default=5,
        help="How many recent people to list (default: 5)",
    )
    progress_parser.set_defaults(func=cmd_progress)

    show_parser = subparsers.add_parser("show", help="Show one image key")
    show_parser.add_argument("key", help="Image key (e.g. q1234)")
    show_parser.set_defaults(func=cmd_show)

    export_parser = subparsers.add_parser("export", help="Export knowledge as JSON")
    export_parser.add_argument("output", type=Path, help="Output file")
    export_parser.set_defaults(func=cmd_export)

    reset_parser = subparsers.add_parser("reset", help="Delete all learned data")
    reset_parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    reset_parser.set_defaults(func=cmd_reset)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
