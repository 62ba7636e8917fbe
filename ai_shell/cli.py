"""CLI entry point for ai-shell's provider layer.

Headless access to model listing and raw completions, for checking a
provider/endpoint setup from a terminal or a script.

Entry point:
    ai-shell-cli models [--json]
    ai-shell-cli complete "<prompt>" [-n N]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from ai_shell.config import AppConfig, SUPPORTED_PROVIDERS, load_config
from ai_shell.errors import KnownError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ai-shell-cli",
        description="Talk to the configured completion provider.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--provider", choices=SUPPORTED_PROVIDERS, default=None, help="Provider name")
    parser.add_argument("--endpoint", default=None, help="API base URL")
    parser.add_argument("--model", default=None, help="Model ID")
    parser.add_argument(
        "--format", dest="local_format", default=None,
        help="Pin a local wire format (ollama, lmstudio, openai)",
    )
    sub = parser.add_subparsers(dest="command")

    # models
    models_p = sub.add_parser("models", help="List available models")
    models_p.add_argument(
        "--json", action="store_true", dest="json_output",
        help="Full JSON output (id, object, created, owned_by)",
    )

    # complete
    complete_p = sub.add_parser("complete", help="Stream a completion to stdout")
    complete_p.add_argument("prompt", help="Prompt text")
    complete_p.add_argument("-n", "--number", type=int, default=1, help="Completions to request")

    return parser


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_models(config: AppConfig, json_output: bool = False) -> int:
    """List available models. Returns exit code."""
    from ai_shell.completion import get_models

    models = await get_models(config)

    if json_output:
        json.dump([m.model_dump() for m in models], sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        for model in models:
            print(model.id)

    return 0


async def _cmd_complete(config: AppConfig, prompt: str, number: int = 1) -> int:
    """Stream every requested choice to stdout, one after another. Returns exit code."""
    from ai_shell.completion import generate_completion
    from ai_shell.streams import extract_text, iter_completion_text, parse_chunk, stream_to_iterable

    stream = await generate_completion(config, prompt, number=number)

    # Local dialects answer with a single choice and no "choices" array
    if number <= 1 or stream.format != "openai":
        async for text in iter_completion_text(stream):
            sys.stdout.write(text)
            sys.stdout.flush()
        sys.stdout.write("\n")
        return 0

    # Several choices arrive interleaved; collect them per index
    choices: dict[int, list[str]] = {}
    async for line in stream_to_iterable(stream):
        payload = parse_chunk(line)
        if payload is None:
            continue
        for choice in payload.get("choices") or []:
            index = choice.get("index", 0)
            choices.setdefault(index, []).append(extract_text(payload, index))

    for index in sorted(choices):
        print(f"[{index + 1}] {''.join(choices[index])}")

    return 0


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main(argv: Optional[list[str]] = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    load_dotenv()

    try:
        config = load_config({
            "provider": args.provider,
            "api_endpoint": args.endpoint,
            "model": args.model,
            "local_format": args.local_format,
        })

        # Dispatch
        if args.command == "models":
            code = asyncio.run(_cmd_models(config, json_output=args.json_output))
        elif args.command == "complete":
            code = asyncio.run(_cmd_complete(config, args.prompt, number=args.number))
        else:
            parser.print_help()
            code = 1
    except KnownError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
