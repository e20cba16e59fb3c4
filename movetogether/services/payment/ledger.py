"""
Payment Ledger
Prize pool and buy-in payments as reported by the processor webhook.

The client only learns that its payment sheet completed; the ledger is what
the server trusts. A prize pool draft only finalizes, and a buy-in only
counts as paid, once a matching paid record exists here.

SECURITY: records are only written from webhooks with a valid signature.
"""
import os
import hmac
import json
import time
import asyncio
import hashlib
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorDatabase

from movetogether.models.competition import PoolMode
from movetogether.models.payment import (
    PaymentRecordStatus,
    PaymentRecordType,
    WebhookVerificationResult,
)

load_dotenv()

logger = logging.getLogger(__name__)

PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET", "")
PAYMENT_WEBHOOK_TOLERANCE_SECONDS = int(os.getenv("PAYMENT_WEBHOOK_TOLERANCE_SECONDS", "300"))
# The webhook usually lands a moment after the sheet reports success
PAYMENT_CONFIRMATION_WAIT_SECONDS = float(os.getenv("PAYMENT_CONFIRMATION_WAIT_SECONDS", "10"))
POLL_INTERVAL_SECONDS = 0.5


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    """HMAC-SHA256 over "<timestamp>.<body>", hex encoded"""
    signed_payload = timestamp.encode("utf-8") + b"." + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def _parse_amount(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def pool_contribution(prize_pool: Dict[str, Any]) -> Optional[float]:
    """Amount the creator pays for a stored prize pool section"""
    if prize_pool.get("mode") == PoolMode.BUY_IN.value:
        return _parse_amount(prize_pool.get("buy_in_amount"))
    return _parse_amount(prize_pool.get("amount"))


class PaymentLedger:
    """
    Payment records keyed by processor payment intent id.

    Collection: prize_payments
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        webhook_secret: Optional[str] = None,
        wait_seconds: Optional[float] = None
    ):
        self.db = db
        self.payments = db.prize_payments
        self.webhook_secret = PAYMENT_WEBHOOK_SECRET if webhook_secret is None else webhook_secret
        self.wait_seconds = PAYMENT_CONFIRMATION_WAIT_SECONDS if wait_seconds is None else wait_seconds

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def verify_webhook(
        self,
        headers: Dict[str, str],
        raw_body: bytes,
        now: Optional[float] = None
    ) -> WebhookVerificationResult:
        """
        Verify the processor signature and parse the event.

        Signature header: "t=<unix timestamp>,v1=<hex hmac>[,v1=...]"
        """
        if not self.webhook_secret:
            return WebhookVerificationResult(is_valid=False, error_message="Webhook secret is not configured")

        headers_lower = {k.lower(): v for k, v in headers.items()}
        signature_header = headers_lower.get("stripe-signature")
        if not signature_header:
            return WebhookVerificationResult(is_valid=False, error_message="Missing webhook signature header")

        timestamp = None
        signatures = []
        for item in signature_header.split(","):
            key, _, value = item.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signatures.append(value)

        if not timestamp or not signatures:
            return WebhookVerificationResult(is_valid=False, error_message="Malformed webhook signature header")

        try:
            sent_at = int(timestamp)
        except ValueError:
            return WebhookVerificationResult(is_valid=False, error_message="Malformed webhook signature header")

        now = time.time() if now is None else now
        if abs(now - sent_at) > PAYMENT_WEBHOOK_TOLERANCE_SECONDS:
            return WebhookVerificationResult(is_valid=False, error_message="Webhook timestamp is too old")

        expected = compute_signature(self.webhook_secret, timestamp, raw_body)
        if not any(hmac.compare_digest(expected, s) for s in signatures):
            return WebhookVerificationResult(is_valid=False, error_message="Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except ValueError:
            return WebhookVerificationResult(is_valid=False, error_message="Webhook body is not valid JSON")

        return WebhookVerificationResult(is_valid=True, event=event)

    async def process_webhook(self, headers: Dict[str, str], raw_body: bytes) -> Tuple[bool, str]:
        """
        Verify and record a processor webhook.

        Returns:
            (success, message)
        """
        verification = self.verify_webhook(headers, raw_body)
        if not verification.is_valid:
            logger.warning(f"[SECURITY] Rejected payment webhook: {verification.error_message}")
            return False, verification.error_message

        return await self.record_event(verification.event)

    async def record_event(self, event: Dict[str, Any]) -> Tuple[bool, str]:
        """Record a verified payment_intent event. Duplicates are ignored."""
        try:
            event_type = event.get("type")
            if event_type == "payment_intent.succeeded":
                status = PaymentRecordStatus.PAID
            elif event_type == "payment_intent.payment_failed":
                status = PaymentRecordStatus.FAILED
            else:
                return True, f"Ignored event {event_type}"

            intent = (event.get("data") or {}).get("object") or {}
            metadata = intent.get("metadata") or {}

            try:
                record_type = PaymentRecordType(metadata.get("type"))
            except ValueError:
                return True, "Not a prize pool payment"

            payment_intent_id = intent.get("id")
            if not payment_intent_id:
                return False, "Payment intent id missing"

            existing = await self.payments.find_one({"payment_intent_id": payment_intent_id})
            if existing and existing["status"] == PaymentRecordStatus.PAID.value:
                return True, "Payment already recorded"

            if record_type == PaymentRecordType.BUY_IN_JOIN:
                pool_type = PoolMode.BUY_IN.value
                amount = _parse_amount(metadata.get("buy_in_amount"))
            else:
                pool_type = metadata.get("pool_type") or PoolMode.CREATOR_FUNDED.value
                amount = pool_contribution({
                    "mode": pool_type,
                    "amount": metadata.get("prize_amount"),
                    "buy_in_amount": metadata.get("buy_in_amount"),
                })

            now = datetime.utcnow()
            record = {
                "type": record_type.value,
                "status": status.value,
                "competition_id": metadata.get("competition_id"),
                "user_id": metadata.get("user_id"),
                "invitation_id": metadata.get("invitation_id") or None,
                "pool_type": pool_type,
                "amount": amount,
                "amount_charged": (intent.get("amount") or 0) / 100,
                "updated_at": now,
            }
            if status == PaymentRecordStatus.PAID:
                record["paid_at"] = now
            else:
                record["error_message"] = (intent.get("last_payment_error") or {}).get("message") or "Payment failed"

            await self.payments.update_one(
                {"payment_intent_id": payment_intent_id},
                {"$set": record, "$setOnInsert": {"created_at": now}},
                upsert=True
            )

            logger.info(f"[PAYMENT] {record_type.value} payment {payment_intent_id} recorded as {status.value}")
            return True, f"Payment {status.value}"

        except Exception as e:
            logger.error(f"[PAYMENT] record_event failed: {str(e)}")
            return False, f"Webhook processing failed: {str(e)}"

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def prize_pool_paid(self, competition_id: str, creator_id: str, prize_pool: Dict[str, Any]) -> bool:
        """True when the creator paid for exactly this pool (mode and amount)"""
        amount = pool_contribution(prize_pool)
        if amount is None:
            return False

        record = await self.payments.find_one({
            "type": PaymentRecordType.PRIZE_POOL.value,
            "status": PaymentRecordStatus.PAID.value,
            "competition_id": competition_id,
            "user_id": creator_id,
            "pool_type": prize_pool.get("mode"),
            "amount": amount,
        })
        return record is not None

    async def buy_in_paid(self, invitation_id: str, invitee_id: str, buy_in_amount: Optional[float]) -> bool:
        amount = _parse_amount(buy_in_amount)
        if amount is None:
            return False

        record = await self.payments.find_one({
            "type": PaymentRecordType.BUY_IN_JOIN.value,
            "status": PaymentRecordStatus.PAID.value,
            "invitation_id": invitation_id,
            "user_id": invitee_id,
            "amount": amount,
        })
        return record is not None

    async def has_paid_prize_pool(self, competition_id: str) -> bool:
        """Any paid creator payment for the competition, whatever the amount"""
        record = await self.payments.find_one({
            "type": PaymentRecordType.PRIZE_POOL.value,
            "status": PaymentRecordStatus.PAID.value,
            "competition_id": competition_id,
        })
        return record is not None

    async def wait_for_payment(self, check: Callable[[], Awaitable[bool]]) -> bool:
        """Poll check() until it passes or wait_seconds elapse"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds

        while True:
            if await check():
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(POLL_INTERVAL_SECONDS, remaining))
