#!/usr/bin/env python3
"""
Dev helper: send a test inbound-email webhook to the local Financial Hub backend.

Builds a Postmark inbound payload from command-line flags and POST-s it to
the /webhook/email-inbound endpoint.

Usage
-----
# Basic: a sample Netflix receipt, targeting localhost:8000
python scripts/send_inbound_email.py

# Custom sender, subject and body
python scripts/send_inbound_email.py --from me@example.com \\
    --subject "Your Spotify receipt" --body "Spotify charged you $9.99."

# Read the body from a file
python scripts/send_inbound_email.py --body-file samples/aws_invoice.txt

# Send the same message twice to check idempotency
python scripts/send_inbound_email.py --message-id demo-1 --repeat 2

# Print the payload without sending
python scripts/send_inbound_email.py --dry-run
"""

import argparse
import json
import sys
import textwrap
import uuid
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path

import httpx
from dotenv import load_dotenv


SAMPLE_SUBJECT = "Your Netflix receipt"
SAMPLE_BODY = (
    "Netflix charged you €13.99 for your Premium plan.\n\n"
    "The reason for this plan is the 4K streaming support."
)


def build_postmark_payload(
    from_email: str,
    subject: str,
    body: str,
    message_id: str,
    from_name: str = "",
) -> dict:
    """
    Build a Postmark inbound webhook payload (PascalCase keys).

    Only the fields the backend reads are populated: From, FromFull,
    Subject, TextBody, MessageID and Date.
    """
    from_header = f"{from_name} <{from_email}>" if from_name else from_email
    return {
        "From": from_header,
        "FromFull": {"Email": from_email, "Name": from_name},
        "Subject": subject,
        "TextBody": body,
        "MessageID": message_id,
        "Date": format_datetime(datetime.now(timezone.utc)),
    }


def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def main() -> int:
    # scripts/ lives one level below the project root
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_inbound_email.py",
        description="Send a test inbound-email webhook to the Financial Hub backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_inbound_email.py
              python scripts/send_inbound_email.py --subject "AWS invoice" --body-file invoice.txt
              python scripts/send_inbound_email.py --message-id demo-1 --repeat 2
              python scripts/send_inbound_email.py --url http://localhost:8000
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--from",
        dest="from_email",
        default="owner@example.com",
        help="Sender (owner) email address (default: owner@example.com)",
    )
    parser.add_argument("--from-name", default="", help="Sender display name")
    parser.add_argument("--subject", default=SAMPLE_SUBJECT, help="Email subject")
    body_group = parser.add_mutually_exclusive_group()
    body_group.add_argument("--body", default=None, help="Plain-text email body")
    body_group.add_argument(
        "--body-file",
        default=None,
        metavar="PATH",
        help="Read the plain-text body from a file",
    )
    parser.add_argument(
        "--message-id",
        default=None,
        help="Provider MessageID (default: a random UUID)",
    )
    parser.add_argument(
        "--repeat",
        type=int,
        default=1,
        help="Send the same payload N times (default: 1)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    if args.body_file:
        body_path = Path(args.body_file)
        if not body_path.exists():
            print(f"ERROR: File not found: {body_path}", file=sys.stderr)
            return 1
        body = body_path.read_text()
    else:
        body = args.body if args.body is not None else SAMPLE_BODY

    payload = build_postmark_payload(
        from_email=args.from_email,
        subject=args.subject,
        body=body,
        message_id=args.message_id or str(uuid.uuid4()),
        from_name=args.from_name,
    )

    endpoint = f"{args.url.rstrip('/')}/webhook/email-inbound"

    print(f"Endpoint  : {endpoint}")
    print(f"From      : {payload['From']}")
    print(f"Subject   : {args.subject}")
    print(f"MessageID : {payload['MessageID']}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    exit_code = 0
    for attempt in range(max(args.repeat, 1)):
        if args.repeat > 1:
            print(f"\nDelivery {attempt + 1} of {args.repeat}")
        try:
            response = httpx.post(endpoint, json=payload, timeout=60)
        except httpx.ConnectError:
            print(
                f"\nERROR: Could not connect to {endpoint}\n"
                "Is the backend running? Start it with:\n"
                "  cd backend && source .venv/bin/activate && uvicorn finhub.main:app --reload",
                file=sys.stderr,
            )
            return 1
        except httpx.HTTPError as exc:
            print(f"\nERROR: {exc}", file=sys.stderr)
            return 1

        _print_response(response)
        if response.status_code != 200:
            exit_code = 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
