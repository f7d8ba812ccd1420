from __future__ import annotations

import argparse
import json
import logging
import secrets
import sys
from pathlib import Path
from typing import Any, List, Sequence

import uvicorn

from .api import create_app
from .config import AppConfig, load_config, load_env_files
from .google_sheets import GoogleSheetsClient
from .notifier import DiscordNotifier
from .pipeline import BatchOrchestrator, apply_field_aliases

LOGGER = logging.getLogger("spreadsheet_ranker")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Record game activity as counter increments in Google Sheets"
    )
    parser.add_argument("--config", help="Path to the YAML configuration file")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default=None, help="Override the configured bind address")
    serve.add_argument("--port", type=int, default=None, help="Override the configured port")

    apply = subparsers.add_parser("apply", help="Apply a batch of updates from a JSON file")
    apply.add_argument("payloads", help="JSON file with a list of updates or {'payloads': [...]}")
    apply.add_argument("--invoker", default=None, help="Name reported in notifications")

    token = subparsers.add_parser("generate-token", help="Print a random API token")
    token.add_argument("--bytes", type=int, default=32, help="Number of random bytes")

    args = parser.parse_args(argv)
    if args.command != "generate-token" and not args.config:
        parser.error("--config is required for this command")
    return args


def _load(config_arg: str) -> AppConfig:
    config_path = Path(config_arg).expanduser().resolve()
    load_env_files(config_path)
    return load_config(config_path)


def _build_notifier(config: AppConfig) -> DiscordNotifier:
    return DiscordNotifier(
        config.notifications.resolve_webhook_url(),
        timeout=config.notifications.timeout,
    )


def _read_payloads(path: Path) -> List[Any]:
    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("payloads")
    if not isinstance(data, list):
        msg = f"Expected a list of updates in {path}"
        raise ValueError(msg)
    return data


def _serve(config: AppConfig, args: argparse.Namespace) -> int:
    api_token = config.server.resolve_api_token()
    if not api_token:
        LOGGER.error(
            "API token is not configured; set server.api_token or %s",
            config.server.api_token_env or "server.api_token_env",
        )
        return 2

    orchestrator = BatchOrchestrator.from_config(config, GoogleSheetsClient(config.sheets))
    app = create_app(
        orchestrator,
        api_token=api_token,
        notifier=_build_notifier(config),
        field_aliases=config.field_aliases,
    )
    host = args.host or config.server.host
    port = args.port or config.server.port
    LOGGER.info("SpreadsheetRanker API server running on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port)
    return 0


def _apply(config: AppConfig, args: argparse.Namespace) -> int:
    payloads = _read_payloads(Path(args.payloads).expanduser())
    if not payloads:
        LOGGER.warning("No updates found in %s", args.payloads)
        return 0

    orchestrator = BatchOrchestrator.from_config(config, GoogleSheetsClient(config.sheets))
    notifier = _build_notifier(config)
    invoker = args.invoker or "CLI"
    if notifier.enabled:
        notifier.command_used(invoker, payloads)

    report = orchestrator.apply_batch(apply_field_aliases(payloads, config.field_aliases))

    if notifier.enabled:
        first = payloads[0] if isinstance(payloads[0], dict) else {}
        notifier.batch_results(invoker, first.get("department"), report.results)

    output = {
        "results": [result.to_dict() for result in report.results],
        "successCount": report.success_count,
        "failureCount": report.failure_count,
    }
    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0 if report.failure_count == 0 else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "generate-token":
        token = secrets.token_hex(args.bytes)
        print(token)
        print(f"Add this to your .env file:\nAPI_TOKEN={token}", file=sys.stderr)
        return 0

    config = _load(args.config)
    if args.command == "serve":
        return _serve(config, args)
    return _apply(config, args)


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
