#!/usr/bin/env python3
"""Lesson Content Generator - command-line front end."""

import argparse
import asyncio
import sys
from pathlib import Path

from tqdm import tqdm

import config
from lessongen.content_reconciler import ContentReconciler
from lessongen.errors import LessonStoreError
from lessongen.generation_client import GenerationClient
from lessongen.job_poller import JobPoller
from lessongen.lesson_store import LessonStore
from lessongen.logger import setup_logger
from lessongen.models import GenerationPhase, GenerationState, LessonForm, Level
from lessongen.state_machine import GenerationStateMachine


class ProgressDisplay:
    """Mirrors state machine snapshots onto a tqdm bar."""

    def __init__(self):
        self.bar = tqdm(total=100, desc="  Generating", unit="%", bar_format="{l_bar}{bar}| {n_fmt}%")

    def __call__(self, state: GenerationState) -> None:
        self.bar.n = state.progress_percent
        self.bar.set_postfix_str(f"{state.phase.value}: {state.status_message}", refresh=False)
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()


async def generate_lesson(args: argparse.Namespace, logger) -> int:
    store = LessonStore() if (args.save or args.lesson_id) else None
    try:
        return await _run_generation(args, logger, store)
    finally:
        if store:
            await store.aclose()


async def _run_generation(args: argparse.Namespace, logger, store: LessonStore | None) -> int:
    form = LessonForm(title=args.title)

    if args.lesson_id:
        try:
            form = await store.fetch(args.lesson_id)
        except LessonStoreError as e:
            logger.error(f"Could not load lesson {args.lesson_id}: {e}")
            return 1
        form.title = args.title or form.title

    client = GenerationClient()
    poller = JobPoller(interval_ms=args.interval_ms, max_poll_count=args.max_polls)
    machine = GenerationStateMachine(client, poller, ContentReconciler(form))

    display = ProgressDisplay()
    machine.subscribe(display)

    task = asyncio.create_task(
        machine.start(form.title, args.level, args.instructions or "")
    )
    try:
        await task
    except asyncio.CancelledError:
        machine.dispose()
        raise
    finally:
        display.close()
        await client.aclose()
        await poller.aclose()

    state = machine.snapshot()
    if state.phase != GenerationPhase.COMPLETE:
        if state.error:
            logger.error(f"Generation failed [{state.error.kind.value}]: {state.error.message}")
        else:
            logger.warning(state.status_message or "Generation did not complete")
        return 1

    output_path = args.output or config.get_output_path(form.title)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(form.content, encoding="utf-8")
    logger.info(f"Lesson written to: {output_path}")

    if args.save:
        try:
            lesson_id = await store.save(form, args.lesson_id)
        except LessonStoreError as e:
            logger.error(f"Could not save lesson: {e}")
            return 1
        logger.info(f"Lesson saved with id {lesson_id}")

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Generate English lesson content with AI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate a beginner lesson and write it to generated_lessons/
  python main.py "Ordering Food" --level beginner

  # Regenerate an existing lesson and save it back
  python main.py "Ordering Food" --lesson-id 42 --save
        """,
    )

    parser.add_argument(
        "title",
        nargs="?",
        default="",
        help="Lesson title (defaults to the stored title with --lesson-id)",
    )
    parser.add_argument(
        "--level",
        choices=[level.value for level in Level],
        default=Level.BEGINNER.value,
        help="Learner level",
    )
    parser.add_argument("--instructions", help="Additional instructions for the AI model")
    parser.add_argument(
        "--interval-ms",
        type=int,
        default=config.POLL_INTERVAL_MS,
        help="Delay between status checks in milliseconds",
    )
    parser.add_argument(
        "--max-polls",
        type=int,
        default=config.MAX_POLL_COUNT,
        help="Status checks before giving up",
    )
    parser.add_argument("--output", type=Path, help="Markdown output file")
    parser.add_argument("--lesson-id", help="Existing lesson to load and update")
    parser.add_argument("--save", action="store_true", help="Persist the lesson to the backend")

    args = parser.parse_args()

    logger = setup_logger()

    logger.info("=" * 60)
    logger.info(f"Lesson generation: {args.title} ({args.level})")
    logger.info("=" * 60)

    try:
        sys.exit(asyncio.run(generate_lesson(args, logger)))
    except KeyboardInterrupt:
        logger.warning("Generation canceled by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
