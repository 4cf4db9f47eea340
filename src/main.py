# src/main.py — v3
"""CLI entry point — complete, models commands.

Usage:
    chatrelay complete <prompt> [options]
    chatrelay models
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from chatrelay.logging.logger import get_logger
from chatrelay.version import __version__

logger = get_logger("main")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def cli() -> None:
    """Console script entry point."""
    sys.exit(main())


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="chatrelay",
        description=f"chatrelay v{__version__} — provider-neutral chat completions",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- complete ---
    p_complete = subparsers.add_parser(
        "complete", help="Run one chat completion",
    )
    p_complete.add_argument("prompt", help="User prompt")
    p_complete.add_argument(
        "-m", "--model", default=None,
        help="Model name or provider:model (default: LLM_DEFAULT_MODEL)",
    )
    p_complete.add_argument("--system", default=None, help="System prompt")
    p_complete.add_argument(
        "--image", type=Path, default=None, help="Image file to attach",
    )
    p_complete.add_argument(
        "--image-description", default=None,
        help="Text sent alongside the image",
    )
    p_complete.add_argument("--temperature", type=float, default=None)
    p_complete.add_argument(
        "--retries", type=int, default=None,
        help="Structured-output retry budget (default: LLM_DEFAULT_RETRIES)",
    )
    p_complete.add_argument(
        "--no-cache", action="store_true", help="Bypass the response cache",
    )
    p_complete.set_defaults(func=_cmd_complete)

    # --- models ---
    p_models = subparsers.add_parser(
        "models", help="List registered models by provider",
    )
    p_models.set_defaults(func=_cmd_models)

    return parser


async def _cmd_complete(args: argparse.Namespace) -> int:
    """Execute a single chat completion and print it as JSON."""
    from chatrelay.config.settings import load_settings
    from chatrelay.llm.client_factory import create_client_for_model
    from chatrelay.llm.models import ChatCompletionOptions, ChatMessage, ImageAttachment

    settings = load_settings()

    messages: list[ChatMessage] = []
    if args.system:
        messages.append(ChatMessage(role="system", content=args.system))
    messages.append(ChatMessage(role="user", content=args.prompt))

    image = None
    if args.image is not None:
        image_path: Path = args.image
        if not image_path.is_file():
            logger.error("Image not found: %s", image_path)
            return 1
        image = ImageAttachment(
            buffer=image_path.read_bytes(),
            description=args.image_description,
            media_type=_detect_media_type(image_path),
        )

    retries = args.retries if args.retries is not None else settings.llm_default_retries
    options = ChatCompletionOptions(
        messages=messages,
        temperature=args.temperature,
        image=image,
        retries=retries,
    )

    client = create_client_for_model(
        args.model,
        settings=settings,
        enable_caching=False if args.no_cache else None,
    )
    result = await client.create_chat_completion(options)
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


async def _cmd_models(args: argparse.Namespace) -> int:
    """Print registered models grouped by provider."""
    from chatrelay.config.settings import load_settings
    from chatrelay.llm.config import available_models, register_settings_models

    register_settings_models(load_settings())
    for provider, models in available_models().items():
        print(f"{provider}:")
        for model in models:
            print(f"  {model}")
    return 0


def _detect_media_type(path: Path) -> str:
    """Detect image media type from file extension."""
    ext_map = {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".webp": "image/webp",
        ".gif": "image/gif",
    }
    return ext_map.get(path.suffix.lower(), "image/jpeg")


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from chatrelay.config.settings import load_settings
    from chatrelay.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    cli()
