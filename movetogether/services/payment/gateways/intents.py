"""
Payment Intent Client
Asks the payment endpoint for a client secret before a sheet is presented
"""
import os
import httpx
from typing import Dict, Any, Optional
from dotenv import load_dotenv

from movetogether.models.payment import ChargeRequest, PaymentIntent

load_dotenv()


class PaymentIntentClient:
    """
    Thin client for the prize/buy-in payment intent endpoints.

    Creator charges go to create-prize-payment; invitee buy-ins (requests
    carrying an invitation id) go to create-buy-in-payment.
    """

    PRIZE_PAYMENT_PATH = "/functions/v1/create-prize-payment"
    BUY_IN_PAYMENT_PATH = "/functions/v1/create-buy-in-payment"

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = self._load_config_from_env()
        if config:
            self.config.update({k: v for k, v in config.items() if v is not None})
        self.access_token = access_token
        self._transport = transport

    def _load_config_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        return {
            "base_url": os.getenv("PAYMENTS_BASE_URL", "http://localhost:54321"),
            "api_key": os.getenv("PAYMENTS_API_KEY", ""),
            "timeout": float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
        }

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "apikey": self.config.get("api_key", ""),
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _build_request(self, request: ChargeRequest):
        if request.invitation_id:
            return self.BUY_IN_PAYMENT_PATH, {
                "competitionId": request.competition_id,
                "invitationId": request.invitation_id,
            }

        return self.PRIZE_PAYMENT_PATH, {
            "competitionId": request.competition_id,
            "prizeAmount": request.amount,
            "payoutStructure": request.payout_structure,
            "poolType": request.pool_type.value,
            "buyInAmount": request.buy_in_amount,
        }

    async def create_intent(self, request: ChargeRequest) -> PaymentIntent:
        """
        Create a payment intent for a charge request.

        Returns:
            PaymentIntent with client secret and the amount the processor will charge
        """
        if not self.access_token:
            return PaymentIntent(success=False, error_message="Please sign in again to continue")

        path, payload = self._build_request(request)

        try:
            async with httpx.AsyncClient(
                base_url=self.config["base_url"],
                timeout=self.config["timeout"],
                transport=self._transport
            ) as client:
                response = await client.post(path, headers=self._get_headers(), json=payload)

                try:
                    response_data = response.json()
                except ValueError:
                    response_data = {}

                if response.is_success and not response_data.get("error"):
                    return PaymentIntent(
                        success=True,
                        client_secret=response_data.get("clientSecret"),
                        amount=response_data.get("amount"),
                        raw_response=response_data
                    )

                error_msg = response_data.get("error") or "Failed to create payment"
                if response_data.get("details"):
                    error_msg = f"{error_msg} ({response_data['details']})"
                return PaymentIntent(success=False, error_message=error_msg, raw_response=response_data)

        except httpx.HTTPError as e:
            return PaymentIntent(success=False, error_message=str(e) or "Network error")
