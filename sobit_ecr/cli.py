"""Interactive command-line client: reads operations from stdin and prints the outcome."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Final, Optional, Sequence, TextIO

from sobit_ecr.client import EcrClient
from sobit_ecr.config import ClientSettings
from sobit_ecr.models import Credentials
from sobit_ecr.tokens import TokenStore

LOGGER = logging.getLogger(__name__)

RESULT_LABELS: Final[dict[str, str]] = {"0": "Accepted", "1": "Declined", "9": "Aborted"}
DEFAULT_AMOUNT: Final[str] = "59.0"
DEFAULT_CURRENCY_CODE: Final[str] = "203"
DEFAULT_INVOICE_NUMBER: Final[str] = "2532000001"

Output = Callable[[str], None]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send terminal operations to the Sobit ECR service.")
    parser.add_argument("identifier", nargs="?", help="Cash register identifier.")
    parser.add_argument("--api-key", default=None, help="API key (overrides env).")
    parser.add_argument("--endpoint", default=None, help="Service WebSocket URL (overrides env).")
    parser.add_argument("--token-dir", type=Path, default=None, help="Directory of persisted tokens.")
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default=None,
        help="Log level (overrides env).",
    )
    return parser.parse_args(argv)


def build_sale_payload(transaction_id: str, amount: str = DEFAULT_AMOUNT) -> str:
    return json.dumps(
        {
            "Amount": amount,
            "CurrencyCode": DEFAULT_CURRENCY_CODE,
            "Operation": "CP",
            "TransactionID": transaction_id,
            "InvNumber": DEFAULT_INVOICE_NUMBER,
        }
    )


def describe_result(message: Optional[str]) -> str:
    """Summarise a ``complete_transaction`` message for the operator."""

    try:
        parsed = json.loads(message or "")
    except json.JSONDecodeError:
        return "Error parsing message."
    if not isinstance(parsed, dict):
        return "Error parsing message."
    result = parsed.get("Result")
    label = RESULT_LABELS.get(result) if isinstance(result, str) else None
    if label:
        return f"Result: {label}."
    return f"Unknown result: {result}."


def handle_command(client: EcrClient, line: str, out: Output = print) -> bool:
    """Dispatch one console line; returns ``False`` when the operator asked to quit."""

    params = line.split()
    if not params:
        return True
    op = params.pop(0)

    def on_response(message: Optional[str], _op: Optional[str] = None) -> None:
        out(describe_result(message))

    def on_error(code: int, message: str) -> None:
        out(f"Error: {code} {message}")

    def on_connect() -> None:
        out("Connection established.")

    if op == "quit":
        return False
    if op == "start_transaction" and params:
        amount = params[1] if len(params) > 1 else DEFAULT_AMOUNT
        client.start_transaction(
            build_sale_payload(params[0], amount),
            params[0],
            on_response,
            on_error,
            on_connect,
        )
    elif op == "cancel_transaction" and params:
        client.cancel_transaction(params[0], None, on_response, on_error, on_connect)
    elif op == "notify_group" and params:
        message = params[1] if len(params) > 1 else "update"
        client.notify_group(message, params[0], on_error, on_connect)
    else:
        out("Unknown operation.")
    return True


async def run_console(client: EcrClient, stdin: TextIO = sys.stdin, out: Output = print) -> None:
    out("Enter messages to send (ctrl+c to quit):")
    try:
        while True:
            line = await asyncio.to_thread(stdin.readline)
            if not line:
                break
            if not handle_command(client, line, out):
                break
    finally:
        await client.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    overrides = {
        "api_key": args.api_key,
        "endpoint_url": args.endpoint,
        "token_dir": args.token_dir,
        "log_level": args.log_level,
    }
    settings = ClientSettings(**{key: value for key, value in overrides.items() if value is not None})

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    api_key = settings.api_key or os.environ.get("API_KEY")
    if not api_key:
        print("API key not set.", file=sys.stderr)
        return 1
    identifier = args.identifier or settings.identifier
    if not identifier:
        print("Identifier not set.", file=sys.stderr)
        return 1

    token = settings.token or TokenStore(settings.token_dir, settings.token_length).load_or_create(identifier)
    client = EcrClient(Credentials(api_key, identifier, token), settings=settings)
    try:
        asyncio.run(run_console(client))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
