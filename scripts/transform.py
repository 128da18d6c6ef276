"""CLI for prompting a Gemini model over the active file or the whole repository."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from transformer import (
    Cancelled,
    ConfigurationError,
    GenerationRequest,
    SourceScope,
    Transformer,
    TransformerConfig,
    TransformerError,
    create_transformer,
    get_available_models,
    get_available_transports,
)

logger = logging.getLogger("transform")

EXIT_COMMANDS = ("exit", "quit")
RESET_COMMAND = ":reset"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Send a prompt with code context to a Gemini model on Vertex AI.",
    )
    parser.add_argument(
        "--prompt",
        "-p",
        help="Prompt to send (omit for interactive mode).",
    )
    parser.add_argument(
        "--scope",
        choices=["OpenTab", "Repository"],
        default="OpenTab",
        help="Send the active file (OpenTab) or every file matching the include patterns.",
    )
    parser.add_argument(
        "--file",
        type=Path,
        help="File treated as the active document for the OpenTab scope.",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        default=Path("."),
        help="Workspace root the include patterns are resolved against.",
    )
    parser.add_argument(
        "--model",
        "-m",
        help=f"Model id: {', '.join(get_available_models())} or the configured "
             "VERTEX_MODEL_ID. Overrides VERTEX_MODEL_ID env var.",
    )
    parser.add_argument(
        "--use-cache",
        action="store_true",
        help="Reuse a server-side context cache for repository prompts.",
    )
    parser.add_argument(
        "--transport",
        choices=get_available_transports(),
        help="Transport for uncached requests. Overrides TRANSFORMER_TRANSPORT env var.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file with project settings.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory where responses are written (default: <workspace>/temp).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON (single prompt mode only).",
    )
    parser.add_argument(
        "--interactive",
        "-i",
        action="store_true",
        help="Run in interactive mode.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging output.")
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s")


def build_config(args: argparse.Namespace) -> TransformerConfig:
    """Build configuration from a YAML file or the environment, then apply CLI overrides."""
    if args.config:
        config = TransformerConfig.from_yaml(args.config)
    else:
        config = TransformerConfig.from_env()

    if args.model:
        allowed = set(get_available_models()) | {config.model_id}
        if args.model not in allowed:
            raise ConfigurationError(
                f"Unknown model: '{args.model}'. "
                f"Choose from: {', '.join(sorted(allowed))} or set VERTEX_MODEL_ID"
            )
        config.model_id = args.model
    if args.transport:
        config.transport = args.transport
    config.validate()
    return config


def generate_filename(output_dir: Path, now: Optional[datetime] = None) -> Path:
    """Timestamped markdown path, e.g. temp/20240518T101500123456Z.md."""
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%dT%H%M%S%fZ")
    return output_dir / f"{timestamp}.md"


def write_response(text: str, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = generate_filename(output_dir)
    path.write_text(text, encoding="utf-8")
    return path


def run_request(transformer: Transformer, request: GenerationRequest) -> Optional[str]:
    """Run a request on a worker thread so Ctrl+C can cancel it."""
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(transformer.generate, request)
        while True:
            try:
                return future.result()
            except KeyboardInterrupt:
                print("\n[info] Cancelling...", file=sys.stderr)
                transformer.cancel()


def handle_prompt(
    transformer: Transformer,
    args: argparse.Namespace,
    prompt: str,
    output_dir: Path,
) -> int:
    request = GenerationRequest(
        scope=SourceScope.parse(args.scope),
        prompt=prompt,
        model_id=transformer.config.model_id,
        use_cache=args.use_cache,
    )

    try:
        text = run_request(transformer, request)
    except Cancelled:
        print("[info] Request cancelled.", file=sys.stderr)
        return 1
    except TransformerError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1

    if not text:
        print("[warn] The model returned an empty response.", file=sys.stderr)
        return 1

    try:
        path = write_response(text, output_dir)
    except OSError as e:
        print(f"[error] Could not write response to {output_dir}: {e}", file=sys.stderr)
        return 1

    if args.json:
        output = {"prompt": prompt, "path": str(path), "response": text}
        json.dump(output, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
    else:
        print(f"Response written to {path}")
    return 0


def interactive_loop(transformer: Transformer, args: argparse.Namespace, output_dir: Path) -> int:
    print("=== Code Transformer ===")
    print(f"Type '{RESET_COMMAND}' to drop the context cache, 'exit' or 'quit' to end\n")

    while True:
        try:
            prompt = input("Prompt: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            return 0

        if prompt.lower() in EXIT_COMMANDS:
            print("Goodbye!")
            return 0

        if prompt == RESET_COMMAND:
            transformer.cache_manager.reset()
            print("Context cache cleared.\n")
            continue

        if not prompt:
            continue

        handle_prompt(transformer, args, prompt, output_dir)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1

    workspace = args.workspace.resolve()
    output_dir = args.output_dir or workspace / "temp"
    logger.info("Using model %s via %s transport", config.model_id, config.transport)

    transformer = create_transformer(config, workspace, active_path=args.file)

    if args.interactive or not args.prompt:
        return interactive_loop(transformer, args, output_dir)

    return handle_prompt(transformer, args, args.prompt, output_dir)


if __name__ == "__main__":
    sys.exit(main())
