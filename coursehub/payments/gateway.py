"""
Razorpay hosted checkout
File: coursehub/payments/gateway.py

A checkout session is a Razorpay Payment Link: a hosted page for a
single amount. Razorpay appends ``razorpay_payment_link_id`` (the
session id) to the callback URL when the buyer returns.

The razorpay SDK is synchronous (requests based); calls run in a worker
thread so the event loop never blocks on the gateway.
"""

import asyncio
import logging
from typing import Dict, Optional

import razorpay
import requests
from pydantic import BaseModel

from coursehub.core import config
from coursehub.core.errors import GatewayError, NotFoundError

logger = logging.getLogger(__name__)

PAID = "paid"
MAX_DESCRIPTION_LENGTH = 2048


class CheckoutSession(BaseModel):
    session_id: str
    url: Optional[str] = None
    payment_status: str
    metadata: Dict[str, str] = {}
    amount_total: Optional[int] = None
    payment_intent_id: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAID


def build_razorpay_client() -> razorpay.Client:
    """
    Razorpay client for short-lived request handlers.
    Keep-alive is disabled so a stale pooled connection is never reused.
    """
    session = requests.Session()
    session.headers["Connection"] = "close"
    return razorpay.Client(session=session, auth=(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET))


def session_from_payment_link(link: dict) -> CheckoutSession:
    payments = link.get("payments") or []
    captured = [p for p in payments if p.get("status") in ("captured", "authorized")]
    latest = (captured or payments)[-1] if payments else {}

    notes = link.get("notes") or {}
    if not isinstance(notes, dict):
        # Razorpay returns an empty list when no notes were attached
        notes = {}

    return CheckoutSession(
        session_id=link["id"],
        url=link.get("short_url"),
        payment_status=link.get("status", "created"),
        metadata={k: str(v) for k, v in notes.items()},
        amount_total=link.get("amount_paid") or link.get("amount"),
        payment_intent_id=latest.get("payment_id"),
    )


class RazorpayCheckoutGateway:
    """Creates and re-reads checkout sessions"""

    def __init__(self, client: Optional[razorpay.Client] = None, timeout: Optional[float] = None):
        self.client = client or build_razorpay_client()
        self.timeout = timeout or config.GATEWAY_TIMEOUT_SECONDS

    async def create_session(
        self,
        *,
        amount: int,
        currency: str,
        title: str,
        description: str,
        metadata: Dict[str, str],
        callback_url: str,
    ) -> CheckoutSession:
        """``amount`` is in minor currency units"""
        payload = {
            "amount": amount,
            "currency": currency,
            "accept_partial": False,
            "description": f"{title} - {description}"[:MAX_DESCRIPTION_LENGTH],
            "notes": metadata,
            "callback_url": callback_url,
            "callback_method": "get",
        }
        try:
            link = await asyncio.to_thread(self.client.payment_link.create, payload, timeout=self.timeout)
        except (razorpay.errors.BadRequestError, razorpay.errors.ServerError, razorpay.errors.GatewayError) as e:
            raise GatewayError("Failed to create checkout session", error=str(e))
        except requests.RequestException as e:
            raise GatewayError("Payment gateway unreachable", error=str(e))

        logger.info("Checkout session %s created for %s %s", link.get("id"), amount, currency)
        return session_from_payment_link(link)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        try:
            link = await asyncio.to_thread(self.client.payment_link.fetch, session_id, timeout=self.timeout)
        except razorpay.errors.BadRequestError as e:
            raise NotFoundError("Invalid session", error=str(e))
        except (razorpay.errors.ServerError, razorpay.errors.GatewayError) as e:
            raise GatewayError("Failed to retrieve checkout session", error=str(e))
        except requests.RequestException as e:
            raise GatewayError("Payment gateway unreachable", error=str(e))

        if not link:
            raise NotFoundError("Invalid session")
        return session_from_payment_link(link)
