# app/services/intasend.py
"""IntaSend M-Pesa gateway client.

The client never raises for gateway-side problems: every call returns
either ``GatewaySuccess`` or ``GatewayFailure`` so callers branch on the
result type instead of probing optional response fields.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx
from fastapi import Request

from ..config import settings

logger = logging.getLogger(__name__)

STK_PUSH_PATH = "/api/v1/payment/mpesa-stk-push/"
SEND_MONEY_PATH = "/api/v1/send-money/initiate/"
FAILED_TRANSFER_STATES = {"FAILED", "REJECTED", "CANCELLED", "REVERSED"}


@dataclass(frozen=True)
class GatewaySuccess:
    id: str
    tracking_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)
    kind: str = "success"


@dataclass(frozen=True)
class GatewayFailure:
    reason: str
    raw: Dict[str, Any] = field(default_factory=dict)
    kind: str = "failure"


GatewayResult = Union[GatewaySuccess, GatewayFailure]


class IntaSendGateway:
    def __init__(
        self,
        publishable_key: str,
        secret_key: str,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.publishable_key = publishable_key
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(cls) -> "IntaSendGateway":
        return cls(
            publishable_key=settings.intasend_publishable_key,
            secret_key=settings.intasend_secret_key,
            base_url=settings.intasend_base_url,
            timeout=settings.gateway_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Union[Dict[str, Any], GatewayFailure]:
        try:
            response = await self.client.post(path, json=payload)
        except httpx.TimeoutException:
            logger.warning(f"IntaSend request timed out: {path}")
            return GatewayFailure(reason="Payment gateway timed out")
        except httpx.HTTPError as e:
            logger.warning(f"IntaSend request failed: {path}", extra={"error": str(e)})
            return GatewayFailure(reason=f"Payment gateway unreachable: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {"text": response.text}
        if not isinstance(body, dict):
            body = {"body": body}

        if response.is_error:
            detail = body.get("detail") or body.get("errors") or body.get("message") or response.reason_phrase
            logger.warning(
                f"IntaSend error {response.status_code} on {path}",
                extra={"status_code": response.status_code, "error": str(detail)},
            )
            return GatewayFailure(reason=f"Gateway rejected request ({response.status_code}): {detail}", raw=body)
        return body

    async def collect_charge(
        self,
        amount: int,
        phone: str,
        reference: str,
        callback_url: str,
        metadata: Dict[str, Any],
    ) -> GatewayResult:
        """Send an M-Pesa STK push to the payer's phone."""
        body = await self._post(STK_PUSH_PATH, {
            "public_key": self.publishable_key,
            "amount": amount,
            "phone_number": phone,
            "api_ref": reference,
            "callback_url": callback_url,
            "metadata": metadata,
        })
        if isinstance(body, GatewayFailure):
            return body

        invoice = body.get("invoice") or {}
        checkout_id = invoice.get("invoice_id") or body.get("id")
        if not checkout_id:
            return GatewayFailure(reason="Gateway response carried no checkout id", raw=body)
        return GatewaySuccess(id=str(checkout_id), tracking_id=body.get("tracking_id"), raw=body)

    async def transfer(self, amount: int, account: str, narrative: str) -> GatewayResult:
        """B2C transfer to a single M-Pesa account."""
        body = await self._post(SEND_MONEY_PATH, {
            "provider": "MPESA-B2C",
            "currency": settings.currency,
            "requires_approval": "NO",
            "transactions": [{"account": account, "amount": amount, "narrative": narrative}],
        })
        if isinstance(body, GatewayFailure):
            return body

        state = str(body.get("status") or "").upper()
        tracking_id = body.get("tracking_id")
        if state in FAILED_TRANSFER_STATES or not tracking_id:
            reason = body.get("status_description") or body.get("message") or "M-Pesa payout failed"
            return GatewayFailure(reason=str(reason), raw=body)
        return GatewaySuccess(id=str(tracking_id), tracking_id=tracking_id, raw=body)


def get_gateway(request: Request) -> IntaSendGateway:
    """FastAPI dependency; the gateway is created in the app lifespan."""
    return request.app.state.gateway
