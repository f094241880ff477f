"""
Discovery Engine — Entry Point
==============================
Version 1.0 — October 2026

Command-line entry point. Runs one discovery session and mirrors the
event stream to the console (and optionally to an NDJSON file).

Exit codes: 0 completed or stopped, 1 fatal run failure, 2 cannot start.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config import EngineConfig, ModelConfig
from .events import LoggingObserver
from .session import DiscoverySession, SessionStatus

logger = logging.getLogger("discovery_engine.main")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANNOT_START = 2

DEFAULT_MODELS = {
    "google": "gemini-2.5-flash",
    "openai": "gpt-4.1",
    "anthropic": "claude-3-5-sonnet-20241022",
    "local": "llama3.1",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Autonomous discovery engine")
    parser.add_argument("--goal", type=str, required=True, help="Discovery domain / research goal")
    parser.add_argument("--run-id", type=str, help="Run identifier (default: run_<epoch ms>)")
    parser.add_argument("--mock", action="store_true", help="Run in mock mode (no LLM, no web search)")
    parser.add_argument("--events-file", type=str, help="Append every event to this NDJSON file")
    parser.add_argument("--provider", type=str, choices=sorted(DEFAULT_MODELS),
                        help="LLM provider (default: from environment, else google)")
    parser.add_argument("--model", type=str, help="Model name (e.g., gemini-2.5-flash, gpt-4.1)")
    parser.add_argument("--max-cycles", type=int, help="Discovery cycles before giving up (default: 5)")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    return parser


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Environment settings first, then CLI overrides."""
    config = EngineConfig.from_env(load_env_file=False)

    if args.provider or args.model:
        provider = args.provider or config.reasoning_model.provider
        # A provider switch without --model gets that provider's default model
        model_name = args.model or DEFAULT_MODELS[provider]
        config.reasoning_model = ModelConfig(
            provider=provider,
            model_name=model_name,
            temperature=config.reasoning_model.temperature,
        )

    if args.max_cycles is not None:
        config.max_cycles = args.max_cycles
    if args.events_file:
        config.events_file = args.events_file
    if args.mock:
        config.mock_mode = True
    return config


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point (async version)."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_dotenv()

    # Disable LangSmith tracing by default (unless explicitly enabled)
    if "LANGCHAIN_TRACING_V2" not in os.environ:
        os.environ["LANGCHAIN_TRACING_V2"] = "false"

    config = build_config(args)
    session = DiscoverySession(config)
    session.event_log.subscribe(LoggingObserver())

    print(f"\n{'='*60}")
    print("DISCOVERY ENGINE")
    print(f"{'='*60}")
    print(f"Goal: {args.goal}")
    print(f"Provider: {config.reasoning_model.provider}")
    print(f"Model: {config.reasoning_model.model_name}")
    print(f"Max cycles: {config.max_cycles}")
    print(f"Mock Mode: {config.mock_mode}")
    print(f"{'='*60}\n")

    # Ctrl+C asks for a cooperative stop instead of killing in-flight nodes
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.stop)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers not supported on this platform")

    status = await session.start(args.goal, run_id=args.run_id)

    print(f"\n{'='*60}")
    print(f"RUN {status.value}")
    print(f"{'='*60}")
    if session.message:
        print(session.message)

    if status == SessionStatus.CANNOT_START:
        return EXIT_CANNOT_START
    if status == SessionStatus.FAILED:
        return EXIT_FAILED
    return EXIT_OK


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
