"""
LexiFlow: Vocabulary Enrichment
-------------------------------

Command-line entry point that enriches a list of words into example
sentences with cloze blanks and stores them in the LexiFlow state file.

    lexiflow-enrich words.txt
    lexiflow-enrich ephemeral lucid --concurrency 3
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from lexiflow.config import Config
from lexiflow.services import (
    EnrichmentQueueController,
    JSONStateRepository,
    VocabularyOverview,
    VocabularyStore,
    create_ai_service,
)
from lexiflow.utils import TextParser, setup_logger

logger = logging.getLogger("lexiflow.cli")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lexiflow-enrich",
        description="Generate example sentences for vocabulary words.",
    )
    parser.add_argument("words", nargs="*", help="Words to enrich")
    parser.add_argument("-f", "--file", help="Text file with one word per line")
    parser.add_argument("--state", default=Config.STATE_FILE, help="State file path")
    parser.add_argument("--concurrency", type=int, help="Maximum parallel enrichment calls")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL, help="Log level")
    return parser.parse_args(argv)


def collect_words(args: argparse.Namespace) -> List[str]:
    """Words from the command line followed by the words file, if any."""
    words = [w.strip() for w in args.words if w.strip()]
    if args.file:
        words.extend(TextParser.parse_word_list(Path(args.file).read_text(encoding="utf-8")))
    return words


async def main(argv: Optional[List[str]] = None) -> bool:
    """Main entry point."""
    args = parse_args(argv)
    setup_logger(level=args.log_level, log_file=Config.LOG_FILE)

    if args.file and not Path(args.file).exists():
        logger.error("%s not found", args.file)
        return False

    store = VocabularyStore(JSONStateRepository(args.state))
    store.load()
    if args.concurrency is not None:
        store.set_settings({"concurrencyLimit": args.concurrency})

    words = collect_words(args)
    if not words and not store.processing_queue:
        logger.error("No words given and nothing left in the queue")
        return False

    ai_service = create_ai_service(store.settings)
    if not ai_service.is_configured:
        logger.warning("No API key configured for provider %s", store.settings.get("provider"))

    controller = EnrichmentQueueController(store, ai_service)
    try:
        controller.enqueue(words)
        await controller.drain()
    finally:
        controller.close()
        await ai_service.close()
        await store.save_async()

    stats = controller.stats
    overview = VocabularyOverview(store).get_statistics()
    print(f"Enriched {stats['succeeded']} word(s), {stats['failed']} failed.")
    if stats["failed_words"]:
        print("Failed: " + ", ".join(stats["failed_words"]))
    print(f"Vocabulary now holds {overview['total_words']} word(s), {overview['due_reviews']} due.")
    return stats["failed"] == 0


def run() -> None:
    try:
        success = asyncio.run(main())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n[!] Aborted by user.")
        sys.exit(1)
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    run()
