"""
Console reporting for rounds and sessions.

Per-round lines go through logging. format_* helpers build the multi-line
summaries the CLI prints on demand.
"""

import logging

logger = logging.getLogger(__name__)


def format_accuracy(accuracy) -> str:
    return "N/A" if accuracy is None else f"{accuracy:.1f}%"


def log_round_start(round_number: int, key: str, options: list[str]) -> None:
    logger.info(f"=== ROUND {round_number} ===")
    logger.info(f"Hash: {key}")
    logger.info(f"Options: [{', '.join(options)}]")


def log_guess(guess, negatives=(), claimed=()) -> None:
    """Log the elimination context and the chosen answer."""
    if negatives:
        logger.info(f"  Known wrong for this image: [{', '.join(sorted(negatives))}]")
    for name in sorted(claimed):
        logger.info(f"  {name} already assigned to another image")

    method = guess.method.value
    if method == "SMART":
        logger.info(f"Smart guess from {guess.remaining} remaining options")
    elif method == "RANDOM":
        logger.info("Random guess (all eliminated)")
    logger.info(f"Clicking: {guess.name} ({method})")


def log_learning(result, was_correct: bool, stats, knowledge) -> None:
    """Log the outcome of a learned round."""
    logger.info(f"Result: {'CORRECT' if was_correct else 'WRONG'}")
    logger.info(f"Answer was: {result.name}")

    if result.is_new:
        logger.info(f"NEW PERSON LEARNED: {result.name} -> {result.key}")
        logger.info(f"Database now has {knowledge.people_count} people")
    elif result.is_conflict:
        logger.info(f"Corrected: {result.previous_name} -> {result.name}")
    else:
        logger.info(f"Reinforced: {result.name} (already known)")

    logger.info(
        f"Added {result.negatives_added} negative associations, "
        f"propagated to {result.propagated} other images"
    )
    logger.info(
        f"LEARNING PROGRESS: {knowledge.people_count} people | "
        f"Session: {stats.new_people} new | "
        f"Accuracy: {format_accuracy(stats.accuracy)}"
    )


def log_detailed_progress(round_number: int, stats, knowledge) -> None:
    people = knowledge.people_count
    negatives = knowledge.negative_count
    logger.info(f"DETAILED PROGRESS (Round {round_number}):")
    logger.info(f"   Total people in database: {people}")
    logger.info(f"   New people this session: {stats.new_people}")
    logger.info(f"   Session accuracy: {format_accuracy(stats.accuracy)}")
    logger.info(f"   Total negative associations: {negatives}")
    logger.info(f"   Average negatives per person: {negatives / max(1, people):.1f}")
    logger.info(f"   Rounds played: {round_number}")


def log_guessing_progress(round_number: int, stats, knowledge) -> None:
    logger.info(
        f"GUESSING | Round {round_number} | "
        f"Accuracy: {format_accuracy(stats.accuracy)} | "
        f"Database: {knowledge.people_count} people"
    )


def format_stats(stats: dict) -> str:
    """Render QuizSession.get_stats() output."""
    lines = [
        "DATABASE STATS:",
        f"   People in database: {stats['people']}",
        f"   Negative associations: {stats['negatives']}",
        f"   Average negatives per image: {stats['avg_negatives']:.1f}",
        "",
        "SESSION STATS:",
        f"   Rounds played: {stats['rounds']}",
        f"   Accuracy: {format_accuracy(stats['accuracy'])}",
        f"   New people learned: {stats['new_people']}",
        f"   Timed out rounds: {stats['timeouts']}",
    ]
    return "\n".join(lines)


def format_progress(progress: dict) -> str:
    """Render QuizSession.progress() output."""
    lines = [f"CURRENT PROGRESS: {progress['people']} people in database"]
    if progress.get("pending_guess"):
        lines.append(f"Currently learning from: {progress['pending_guess']}")
    recent = progress.get("recent", [])
    if recent:
        lines.append("Recently learned:")
        lines.extend(f"   {name} -> {key}" for key, name in recent)
    return "\n".join(lines)


def format_debug(info: dict) -> str:
    """Render QuizSession.debug_info() output."""
    lines = [
        "DEBUG INFO:",
        f"   Current mode: {info['mode']}",
        f"   URL hash cache size: {info['cache_size']}",
        f"   Subscribed to changes: {info['subscribed']}",
        f"   Active tasks: {info['active_tasks']}",
        f"   Current image URL: {info['current_source'] or 'None'}",
        f"   Processing state: {info['state']}",
    ]
    entries = info.get("cache_entries", [])
    if entries:
        lines.append("")
        lines.append(f"URL HASH CACHE (last {len(entries)}):")
        for source, key in entries:
            short = "/".join(source.split("/")[-2:])
            lines.append(f"   {short} -> {key}")
    return "\n".join(lines)
