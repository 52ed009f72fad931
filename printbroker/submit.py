"""
Command-line print job submission.

Usage: printbroker-submit <file> <client_id> <printer_id> [-- <lp options...>]
"""

import argparse
import sys
from pathlib import Path

import httpx

from printbroker.config import get_settings
from printbroker.constants import API_KEY_HEADER


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="printbroker-submit",
        description="Upload a file as a print job.",
        epilog="Example: printbroker-submit file.pdf client printer -- -o media=A4",
    )
    parser.add_argument("file", help="Document to print")
    parser.add_argument("client_id", help="Client identity whose worker prints the job")
    parser.add_argument("printer_id", help="Destination name or protocol://host")
    parser.add_argument(
        "options",
        nargs="*",
        help="Spooler options; separate them from this command's options with --",
    )
    parser.add_argument(
        "--context",
        default=None,
        help="Free-text context stored with the job",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="API base URL (default from PUBLIC_BASE_URL)",
    )
    return parser


def submit(
    client: httpx.Client,
    path: Path,
    client_id: str,
    printer_id: str,
    options: str,
    context: str | None = None,
) -> httpx.Response:
    """
    Post a file to the print endpoint.

    Args:
        client: HTTP client configured with the API base URL and key.
        path: The file to upload.
        client_id: Client identity.
        printer_id: Destination name or locator.
        options: Spooler options.
        context: Optional job context.

    Returns:
        The server response.
    """
    data = {
        "clientId": client_id,
        "printerId": printer_id,
        "cupsOptions": options,
    }
    if context is not None:
        data["context"] = context

    with path.open("rb") as f:
        return client.post("/print", data=data, files={"file": (path.name, f)})


def main(argv: list[str] | None = None) -> int:
    """
    Submit entry point.

    Returns:
        0 on success, 1 on missing configuration, missing file or a rejected upload.
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if not settings.api_key:
        print("Error: API_KEY environment variable not set.", file=sys.stderr)
        return 1

    path = Path(args.file).resolve()
    if not path.is_file():
        print(f"Error: File not found at {path}", file=sys.stderr)
        return 1

    base_url = args.url or settings.public_base_url

    try:
        with httpx.Client(
            base_url=base_url,
            headers={API_KEY_HEADER: settings.api_key},
            timeout=httpx.Timeout(30.0, read=None),
        ) as client:
            response = submit(
                client,
                path,
                args.client_id,
                args.printer_id,
                " ".join(args.options),
                context=args.context,
            )
    except httpx.HTTPError as e:
        print(f"Failed to send print job: {e}", file=sys.stderr)
        return 1

    if not response.is_success:
        print(f"Error: {response.status_code} {response.reason_phrase}", file=sys.stderr)
        print(response.text, file=sys.stderr)
        return 1

    print(f"Server response: {response.text}")
    return 0


def run() -> None:
    """Run the submit command."""
    sys.exit(main())


if __name__ == "__main__":
    run()
