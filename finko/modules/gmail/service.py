import logging
from datetime import datetime
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from finko.core.exceptions import ConflictError
from finko.modules.gmail.models import BankConnection, ProcessedEmail
from finko.utils.datetime import epoch_ms_to_datetime

if TYPE_CHECKING:
    from finko.integrations.gmail.client import GmailClient

logger = logging.getLogger(__name__)


@dataclass
class RenewalResult:
    total: int = 0
    renewed: int = 0
    errors: list[str] = field(default_factory=list)


def later_history_id(current: Optional[str], candidate: Optional[str]) -> Optional[str]:
    """The newer of two Gmail history cursors; cursors are decimal strings."""
    if not candidate:
        return current
    if not current:
        return candidate
    try:
        return candidate if int(candidate) > int(current) else current
    except ValueError:
        return candidate


class GmailConnectionService:
    """Mailbox connections and the processed-message markers."""

    def __init__(self):
        self.logger = logger

    async def get_by_address(
        self, db: AsyncSession, gmail_address: str
    ) -> Optional[BankConnection]:
        result = await db.execute(
            select(BankConnection).where(
                BankConnection.gmail_address == gmail_address.strip().lower()
            )
        )
        return result.scalar_one_or_none()

    async def get_by_user(self, db: AsyncSession, user_id: int) -> Optional[BankConnection]:
        result = await db.execute(
            select(BankConnection).where(BankConnection.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_connections(self, db: AsyncSession) -> list[BankConnection]:
        result = await db.execute(select(BankConnection).order_by(BankConnection.id))
        return list(result.scalars().all())

    async def upsert_connection(
        self,
        db: AsyncSession,
        user_id: int,
        gmail_address: str,
        refresh_token: str,
        history_id: str,
        watch_expiration: datetime,
    ) -> BankConnection:
        """One connection per user; reconnecting replaces mailbox and token."""
        connection = await self.get_by_user(db, user_id)
        if connection is None:
            connection = BankConnection(user_id=user_id)
            db.add(connection)

        connection.gmail_address = gmail_address.strip().lower()
        connection.refresh_token = refresh_token
        connection.history_id = history_id
        connection.watch_expiration = watch_expiration
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("This Gmail account is already connected to another user")

        self.logger.info(f"Saved Gmail connection {gmail_address} for user_id: {user_id}")
        return connection

    async def renew_watch_state(
        self,
        db: AsyncSession,
        connection: BankConnection,
        history_id: str,
        watch_expiration: datetime,
    ) -> None:
        connection.history_id = later_history_id(connection.history_id, history_id)
        connection.watch_expiration = watch_expiration
        await db.commit()

    async def advance_history_id(
        self, db: AsyncSession, connection: BankConnection, history_id: str
    ) -> None:
        # Reload: the batch may have rolled back, and a concurrent run may have advanced it
        await db.refresh(connection)
        new_history_id = later_history_id(connection.history_id, history_id)
        if new_history_id == connection.history_id:
            return
        connection.history_id = new_history_id
        await db.commit()
        self.logger.debug(f"History cursor for {connection.gmail_address} now {new_history_id}")

    async def delete_connection(self, db: AsyncSession, connection: BankConnection) -> None:
        await db.delete(connection)
        await db.commit()

    async def is_processed(self, db: AsyncSession, gmail_message_id: str) -> bool:
        result = await db.execute(
            select(ProcessedEmail.id).where(
                ProcessedEmail.gmail_message_id == gmail_message_id
            )
        )
        return result.scalar_one_or_none() is not None

    async def mark_processed(
        self, db: AsyncSession, gmail_message_id: str, user_id: int
    ) -> bool:
        """
        Record the message as handled. Returns False when another run already
        recorded it; any other database error propagates.
        """
        db.add(ProcessedEmail(gmail_message_id=gmail_message_id, user_id=user_id))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            self.logger.info(f"Message {gmail_message_id} was already marked processed")
            return False
        return True

    async def renew_watches(
        self, db: AsyncSession, gmail_client: "GmailClient", topic_name: str
    ) -> RenewalResult:
        """Re-register every watch; one failing mailbox does not stop the rest."""
        connections = await self.list_connections(db)
        mailboxes = [(c, c.gmail_address, c.refresh_token) for c in connections]
        result = RenewalResult(total=len(mailboxes))

        for connection, gmail_address, refresh_token in mailboxes:
            try:
                watch = await gmail_client.watch(refresh_token, topic_name)
                await db.refresh(connection)
                await self.renew_watch_state(
                    db, connection, watch.history_id, epoch_ms_to_datetime(watch.expiration)
                )
            except Exception as e:
                await db.rollback()
                self.logger.error(f"Could not renew Gmail watch for {gmail_address}: {e}")
                result.errors.append(f"{gmail_address}: {getattr(e, 'detail', None) or e}")
                continue

            result.renewed += 1
            self.logger.info(f"Renewed Gmail watch for {gmail_address}")

        return result
