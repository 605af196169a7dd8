"""Command-line entry point for stockmeta."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from tqdm import tqdm

from stockmeta.config import load_config
from stockmeta.inputs import InputValidationError, read_text_file
from stockmeta.logging_utils import configure_logging
from stockmeta.runtime import StockMetaRuntime


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate Adobe Stock metadata in batches with Gemini.")
    parser.add_argument("--prompts", required=True, help="Text file with one image description per line.")
    parser.add_argument("--filenames", required=True, help="Text file with one filename per line.")
    parser.add_argument("--output", default=None, help="Directory for adobe_stock_metadata.csv.")
    parser.add_argument("--config", default=None, help="Extra YAML configuration file.")
    parser.add_argument("--log-level", default=None, help="Console log level override.")
    return parser


def build_runtime(config, logger) -> StockMetaRuntime:
    return StockMetaRuntime(config, logger)


async def _execute(runtime: StockMetaRuntime, prompts_text: str, filenames_text: str, output: Optional[str]) -> Path:
    try:
        items = runtime.start(prompts_text, filenames_text)
        with tqdm(total=len(items), desc="Generating metadata", unit="image") as pbar:

            def _advance(store) -> None:
                done = sum(1 for item in store.items if item.status.is_terminal)
                pbar.update(done - pbar.n)

            unsubscribe = runtime.store.subscribe(_advance)
            try:
                await runtime.process()
            finally:
                unsubscribe()
        return runtime.export(output)
    finally:
        await runtime.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    result = load_config(args.config, include_sources=True)
    config, sources = result.config, result.sources
    logging_config = dict(config.get("logging", {}))
    if args.log_level:
        logging_config["console_level"] = args.log_level
    logger = configure_logging(logging_config)
    logger.info("Loaded configuration from: %s", ", ".join(sources) or "<defaults>")

    try:
        prompts_text = read_text_file(args.prompts)
        filenames_text = read_text_file(args.filenames)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 2

    runtime = build_runtime(config, logger)
    try:
        path = asyncio.run(_execute(runtime, prompts_text, filenames_text, args.output))
    except InputValidationError as exc:
        logger.error("Cannot start run: %s", exc)
        return 2
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        logger.warning("Interrupted by user.")
        return 1
    except Exception as exc:  # pragma: no cover - defensive logging
        logger.exception("Runtime terminated due to unexpected error: %s", exc)
        return 1
    logger.info("Metadata written to %s", path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
