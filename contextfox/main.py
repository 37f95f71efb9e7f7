"""
ContextFox - Command-Line Entry Point
Processes a story file (or part archive) and optionally exports the cards.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import create_default_config_from_env, get_preset
from .core.errors import TransportError
from .core.processor import StoryProcessor
from .models import ProcessorStatus
from .services import (
    InMemoryStateStore,
    OpenRouterClient,
    RedisStateStore,
    StateStore,
    dump_cards,
    fetch_model_catalog,
    load_cards_file,
    load_story_file,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contextfox",
        description="Extract story cards, a summary and plot essentials from a story.",
    )
    parser.add_argument("story_path", help="Story text file or .zip archive of part-NN files")
    parser.add_argument("--story-id", help="State key for this story (default: file name)")
    parser.add_argument("--cards", help="JSON array of existing story cards to start from")
    parser.add_argument("--export", help="Write the resulting cards as JSON to this path")
    parser.add_argument("--preset", help="Task model preset: cheap, default, expensive, very_expensive")
    parser.add_argument(
        "--require-permission",
        action="store_true",
        help="Ask before continuing with each further part",
    )
    return parser


def print_event(event_type: str, data: dict) -> None:
    if event_type == "status" and data.get("message"):
        print(data["message"])
    elif event_type == "task_update" and data["status"] in ("completed", "error"):
        print(f"  [{data['status']}] {data['name']}")


async def _ask_permission(prompt: str) -> bool:
    answer = await asyncio.to_thread(input, prompt)
    return answer.strip().lower() in ("", "y", "yes")


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = create_default_config_from_env()
    settings = config.processor
    if args.preset:
        settings.task_models = get_preset(args.preset)
    if args.require_permission:
        settings.require_permission_between_parts = True

    errors = config.validate_config()
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        return 1

    story_path = Path(args.story_path)
    content = load_story_file(story_path)
    initial_cards = load_cards_file(args.cards) if args.cards else None

    store: StateStore
    if config.redis_url:
        store = RedisStateStore(config.redis_url)
        await store.connect()
    else:
        store = InMemoryStateStore()

    client = OpenRouterClient(config.openrouter, settings.sampling)
    try:
        context_lengths = None
        try:
            catalog = await fetch_model_catalog(
                config.openrouter.api_key.get_secret_value(),
                config.openrouter.base_url,
            )
            context_lengths = catalog.context_lengths
        except TransportError as e:
            print(f"Could not load model list, skipping context check: {e}")

        processor = StoryProcessor(
            args.story_id or story_path.stem,
            client,
            store,
            settings=settings,
            event_callback=print_event,
        )
        outcome = await processor.process(content, initial_cards=initial_cards, context_lengths=context_lengths)
        while outcome.status == ProcessorStatus.AWAITING_PERMISSION:
            if not await _ask_permission(f"{outcome.message} Continue? [Y/n] "):
                print("Stopped before the next part.")
                break
            outcome = await processor.resume()

        if args.export:
            Path(args.export).write_text(dump_cards(outcome.state.accumulated_cards), encoding="utf-8")
            print(f"Exported {len(outcome.state.accumulated_cards)} cards to {args.export}")
    finally:
        await client.close()
        if isinstance(store, RedisStateStore):
            await store.disconnect()

    return 1 if outcome.status == ProcessorStatus.FAILED else 0


def cli() -> None:
    # Load environment variables
    load_dotenv()
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
