"""
Run one Gmail ingestion pass for a mailbox, outside the web server.

Usage:
    python -m scripts.process_gmail_history someone@gmail.com 1234567
"""

import argparse
import asyncio
from dotenv import load_dotenv

load_dotenv()


async def _run(gmail_address: str, history_id: str) -> None:
    from finko.core.config import config
    from finko.core.db.engine import AsyncSessionLocal, dispose_engine
    from finko.core.dependencies import get_orchestrator
    from finko.core.logging_config import configure_logging

    configure_logging(config.log_level)
    orchestrator = get_orchestrator()

    print(f"Processing Gmail history for {gmail_address} from {history_id}...")
    try:
        async with AsyncSessionLocal() as db:
            report = await orchestrator.handle_gmail_notification(
                db, gmail_address, history_id
            )
    finally:
        await dispose_engine()

    print("\n=== Ingestion Report ===")
    if not report.connected:
        print(f"No Gmail connection for {gmail_address}.")
        return
    print(f"Messages in history: {len(report.message_ids)}")
    print(f"Processed: {report.processed}")
    print(f"Transactions created: {report.transactions_created}")
    for reason, count in sorted(report.skipped.items()):
        print(f"Skipped ({reason}): {count}")
    print(f"Errors: {len(report.errors)}")
    if report.errors:
        print("\nError details:")
        for err in report.errors:
            print(f"- {err}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run one-shot Gmail bank email ingestion"
    )
    parser.add_argument("gmail_address", help="Connected Gmail address")
    parser.add_argument("history_id", help="History id to advance the cursor to")
    args = parser.parse_args()
    asyncio.run(_run(args.gmail_address, args.history_id))


if __name__ == "__main__":
    main()
