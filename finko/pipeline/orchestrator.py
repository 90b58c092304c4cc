"""
Transaction ingestion from the two external sources.

Banco de Chile webhooks carry one movement each and are booked straight
away. Gmail notifications only say "something changed in this mailbox", so
the orchestrator walks the history diff, keeps the emails that come from a
configured bank, extracts transactions with the LLM and books them. The
processed-email marker is written last, after every ledger row for that
message, and is checked before any remote call.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from finko.core.exceptions import BadRequestError, GmailNotFoundError, UserNotFoundError
from finko.integrations.gmail.client import GmailClient
from finko.intelligence.categorization.constants import (
    WEBHOOK_EXPENSE_CATEGORY,
    WEBHOOK_INCOME_CATEGORY,
)
from finko.intelligence.extraction.extractor import TransactionExtractor
from finko.modules.bancochile.identity import IdentityResolver
from finko.modules.bancochile.parser import CloudEventParser
from finko.modules.bank_profiles.matcher import match_profile
from finko.modules.bank_profiles.models import BankEmailProfile
from finko.modules.bank_profiles.service import BankProfilesService
from finko.modules.gmail.service import GmailConnectionService
from finko.modules.ledger.models import LedgerEntry
from finko.modules.ledger.service import LedgerService

logger = logging.getLogger(__name__)

REQUIRED_EVENT_FIELDS = ("id", "type", "source")


class MessageOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    NOT_BANK = "not_bank"
    EMPTY = "empty"


@dataclass
class MailboxContext:
    """What message processing needs from the connection, read once per run."""

    user_id: int
    gmail_address: str
    refresh_token: str


@dataclass
class IngestionReport:
    gmail_address: str
    history_id: str
    connected: bool = True
    message_ids: list[str] = field(default_factory=list)
    processed: int = 0
    skipped: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    transactions_created: int = 0
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        if not self.connected:
            return f"{self.gmail_address}: no connection, ignored"
        skipped = ", ".join(f"{k}={v}" for k, v in sorted(self.skipped.items())) or "none"
        return (
            f"{self.gmail_address}@{self.history_id}: {len(self.message_ids)} messages, "
            f"{self.processed} processed, {self.transactions_created} transactions, "
            f"skipped [{skipped}], {len(self.errors)} errors"
        )


class IngestionOrchestrator:
    def __init__(
        self,
        parser: CloudEventParser,
        identity_resolver: IdentityResolver,
        ledger_service: LedgerService,
        connection_service: GmailConnectionService,
        profiles_service: BankProfilesService,
        gmail_client: GmailClient,
        extractor: TransactionExtractor,
    ):
        self.parser = parser
        self.identity_resolver = identity_resolver
        self.ledger_service = ledger_service
        self.connection_service = connection_service
        self.profiles_service = profiles_service
        self.gmail_client = gmail_client
        self.extractor = extractor
        # One worker per mailbox: runs for the same address queue up here
        self._mailbox_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    # Banco de Chile webhook
    # ------------------------------------------------------------------

    async def handle_webhook(
        self,
        db: AsyncSession,
        event: Any,
        query_email: Optional[str] = None,
    ) -> LedgerEntry:
        if (
            not isinstance(event, Mapping)
            or not isinstance(event.get("data"), Mapping)
            or not event["data"]
        ):
            raise BadRequestError("Invalid CloudEvent format")
        if not all(event.get(name) for name in REQUIRED_EVENT_FIELDS):
            raise BadRequestError(
                "Incomplete CloudEvent. Required fields: id, type, source"
            )

        user_id = await self.identity_resolver.resolve(db, event, query_email)
        if user_id is None:
            logger.info(f"No user for Banco de Chile event {event.get('id')}")
            raise UserNotFoundError()

        transaction = self.parser.parse(event)
        if transaction is None:
            raise BadRequestError("Could not parse a transaction from the CloudEvent")

        # No processed marker on this path: a redelivered event is booked again
        entry = await self.ledger_service.create_entry(
            db,
            user_id=user_id,
            kind=transaction.direction,
            merchant=transaction.merchant,
            amount=transaction.amount,
            category=(
                WEBHOOK_INCOME_CATEGORY if transaction.is_income else WEBHOOK_EXPENSE_CATEGORY
            ),
            date=transaction.date,
        )
        logger.info(
            f"Booked {transaction.direction} {entry.id} from Banco de Chile event {event.get('id')}"
        )
        return entry

    # ------------------------------------------------------------------
    # Gmail push notifications
    # ------------------------------------------------------------------

    async def handle_gmail_notification(
        self, db: AsyncSession, gmail_address: str, history_id: str
    ) -> IngestionReport:
        gmail_address = gmail_address.strip().lower()
        async with self._mailbox_locks[gmail_address]:
            report = await self._ingest_mailbox(db, gmail_address, str(history_id))
        logger.info(f"Gmail ingestion: {report.summary()}")
        return report

    async def _ingest_mailbox(
        self, db: AsyncSession, gmail_address: str, history_id: str
    ) -> IngestionReport:
        report = IngestionReport(gmail_address=gmail_address, history_id=history_id)

        connection = await self.connection_service.get_by_address(db, gmail_address)
        if connection is None:
            logger.info(f"No Gmail connection for {gmail_address}, ignoring notification")
            report.connected = False
            return report

        mailbox = MailboxContext(
            user_id=connection.user_id,
            gmail_address=connection.gmail_address,
            refresh_token=connection.refresh_token,
        )
        start_history_id = connection.history_id or history_id

        try:
            report.message_ids = await self.gmail_client.list_history_message_ids(
                mailbox.refresh_token, start_history_id
            )
        except GmailNotFoundError:
            # Cursor older than Gmail keeps; nothing left to catch up on
            logger.warning(
                f"History {start_history_id} for {gmail_address} is no longer available"
            )

        if report.message_ids:
            profiles = await self.profiles_service.list_profiles(db)
            # Detached, so a rollback after a failed message cannot expire them
            for profile in profiles:
                db.expunge(profile)

            for message_id in report.message_ids:
                try:
                    outcome, created = await self.process_message(
                        db, mailbox, message_id, profiles
                    )
                except Exception as e:
                    logger.error(f"Failed to ingest message {message_id}: {e}", exc_info=True)
                    await db.rollback()
                    report.errors.append(f"{message_id}: {e}")
                    continue

                report.transactions_created += created
                if outcome is MessageOutcome.PROCESSED:
                    report.processed += 1
                else:
                    report.skipped[outcome.value] += 1

        await self.connection_service.advance_history_id(db, connection, history_id)
        return report

    async def process_message(
        self,
        db: AsyncSession,
        mailbox: MailboxContext,
        message_id: str,
        profiles: Sequence[BankEmailProfile],
    ) -> tuple[MessageOutcome, int]:
        """Returns the outcome and how many ledger rows were written."""
        if await self.connection_service.is_processed(db, message_id):
            logger.debug(f"Message {message_id} already processed")
            return MessageOutcome.DUPLICATE, 0

        try:
            metadata = await self.gmail_client.get_message_metadata(
                mailbox.refresh_token, message_id
            )
        except GmailNotFoundError:
            logger.info(f"Message {message_id} disappeared before it could be read")
            return MessageOutcome.NOT_FOUND, 0

        profile = match_profile(metadata.from_header, profiles)
        if profile is None:
            logger.debug(f"Message {message_id} from {metadata.from_header!r} is not a bank email")
            return MessageOutcome.NOT_BANK, 0

        try:
            message = await self.gmail_client.get_message(mailbox.refresh_token, message_id)
        except GmailNotFoundError:
            logger.info(f"Message {message_id} disappeared before it could be read")
            return MessageOutcome.NOT_FOUND, 0

        body = message.body or message.snippet
        if not body:
            logger.info(f"Message {message_id} from {profile.bank_name} has no content")
            return MessageOutcome.EMPTY, 0

        transactions = await self.extractor.extract(
            body,
            email_date=message.date,
            bank_name=profile.bank_name,
            extraction_instructions=profile.extraction_instructions,
        )
        logger.info(
            f"Extracted {len(transactions)} transactions from {profile.bank_name} message {message_id}"
        )

        for transaction in transactions:
            await self.ledger_service.create_entry(
                db,
                user_id=mailbox.user_id,
                kind=transaction.direction,
                merchant=transaction.merchant,
                amount=transaction.amount,
                category=transaction.category,
                date=transaction.date,
            )

        if not await self.connection_service.mark_processed(db, message_id, mailbox.user_id):
            logger.warning(
                f"Message {message_id} was marked by a concurrent run after booking"
            )
        return MessageOutcome.PROCESSED, len(transactions)
