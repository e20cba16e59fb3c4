"""
Payment Webhook Routes
Processor webhooks that record prize pool and buy-in payments
SECURITY: events are only recorded after signature verification
"""
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from movetogether.routes.dependencies import get_database
from movetogether.services.payment.ledger import PaymentLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payment Webhooks"])


@router.post("/webhook")
async def handle_payment_webhook(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Handle a payment_intent webhook from the processor.

    - Verifies the signature over the raw body
    - Duplicate deliveries are recorded once
    - Answers 200 even on errors so the processor does not retry bad events
    """
    try:
        raw_body = await request.body()
        headers = dict(request.headers)

        success, message = await PaymentLedger(db).process_webhook(headers, raw_body)

        if success:
            return JSONResponse(status_code=200, content={"status": "success", "message": message})

        logger.warning(f"[WARN] Webhook processing failed: {message}")
        return JSONResponse(status_code=200, content={"status": "failed", "message": message})

    except Exception as e:
        logger.error(f"[ERROR] Webhook handler error: {str(e)}")
        return JSONResponse(status_code=200, content={"status": "error", "message": "Internal error"})
