import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Any, Literal, Optional

from finko.core.exceptions import LLMServiceError
from finko.integrations.llm.service import LLMService
from finko.intelligence.categorization.constants import normalize_category
from finko.intelligence.extraction.prompts import build_system_prompt, build_user_prompt
from finko.modules.bancochile.parser import parse_localized_amount
from finko.utils.datetime import today

logger = logging.getLogger(__name__)

# "15.500" is fifteen thousand five hundred, not fifteen and a half
THOUSANDS_PATTERN = re.compile(r"\d{1,3}(\.\d{3})+")


@dataclass(frozen=True)
class ExtractedTransaction:
    merchant: str
    amount: Decimal
    date: date
    category: str
    direction: Literal["expense", "income"]

    @property
    def is_income(self) -> bool:
        return self.direction == "income"


def _coerce_amount(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        cleaned = value.replace("$", "").replace(" ", "").strip()
        if "," in cleaned or THOUSANDS_PATTERN.fullmatch(cleaned):
            amount = parse_localized_amount(cleaned)
        else:
            try:
                amount = Decimal(cleaned)
            except InvalidOperation:
                amount = parse_localized_amount(cleaned)
    if amount is None or not amount.is_finite() or amount <= 0:
        return None
    return amount


def _strict_date(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def _email_date(value: Optional[str]) -> Optional[date]:
    """Email dates are RFC 2822 headers or already YYYY-MM-DD."""
    if not value:
        return None
    strict = _strict_date(value)
    if strict:
        return strict
    try:
        return parsedate_to_datetime(value).date()
    except (TypeError, ValueError, IndexError):
        return None


def _has_expected_types(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and isinstance(item.get("merchant"), str)
        and isinstance(item.get("amount"), (int, float, str))
        and not isinstance(item.get("amount"), bool)
        and isinstance(item.get("date"), str)
        and isinstance(item.get("category"), str)
        and isinstance(item.get("type"), str)
    )


class TransactionExtractor:
    """
    Reads transactions out of a bank email with the LLM.

    Model output is untrusted: malformed elements are dropped and a failed
    call or unreadable response yields an empty list, never an exception.
    The call is not idempotent, so callers must check the processed marker
    before invoking it.
    """

    def __init__(self, llm_service: LLMService):
        self.llm_service = llm_service

    async def extract(
        self,
        email_body: str,
        email_date: Optional[str] = None,
        bank_name: Optional[str] = None,
        extraction_instructions: Optional[str] = None,
    ) -> list[ExtractedTransaction]:
        try:
            response = await self.llm_service.generate_with_system_prompt(
                system_prompt=build_system_prompt(bank_name, extraction_instructions),
                user_message=build_user_prompt(email_body, email_date),
                max_tokens=1500,
                temperature=0.1,
                json_mode=True,
                call_stack="transaction_extraction",
            )
        except LLMServiceError as e:
            logger.error(f"Transaction extraction failed: {e.detail}")
            return []

        try:
            parsed = json.loads(response.content)
        except json.JSONDecodeError:
            logger.error(f"Extraction response is not JSON: {response.content[:200]}")
            return []

        if isinstance(parsed, dict):
            parsed = parsed.get("transactions") or []
        if not isinstance(parsed, list):
            logger.warning(f"Extraction response has no transaction list: {type(parsed)}")
            return []

        return self._validate(parsed, fallback_date=_email_date(email_date) or today())

    def _validate(
        self, items: list[Any], fallback_date: date
    ) -> list[ExtractedTransaction]:
        transactions = []
        for item in items:
            if not _has_expected_types(item):
                logger.debug(f"Dropping malformed extracted item: {item}")
                continue

            amount = _coerce_amount(item["amount"])
            if amount is None:
                logger.debug(f"Dropping extracted item without a usable amount: {item}")
                continue

            transactions.append(
                ExtractedTransaction(
                    merchant=item["merchant"].strip() or "Sin descripción",
                    amount=amount,
                    date=_strict_date(item["date"]) or fallback_date,
                    category=normalize_category(item["category"]),
                    direction="income" if item["type"] == "income" else "expense",
                )
            )
        return transactions
