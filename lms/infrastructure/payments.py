"""Stripe-backed payment gateway.

The application talks to `PaymentGatewayProtocol`; the Stripe adapter is built
once at start-up with its API key and passed around as a handle.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Protocol

import stripe
import structlog

from ..domain.errors import ExternalServiceFailure, InvalidInput

logger = structlog.get_logger()

PAYMENT_ERROR_MESSAGE = "Payment system error. Please try again later."


class PaymentGatewayProtocol(Protocol):
    def create_customer(self, *, email: str, name: str, user_id: int) -> str: ...

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str | None,
        amount: float,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> str: ...

    def parse_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]: ...


class StripePaymentGateway:
    def __init__(self, api_key: str, webhook_secret: str, currency: str = "usd"):
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._currency = currency

    def create_customer(self, *, email: str, name: str, user_id: int) -> str:
        try:
            customer = stripe.Customer.create(
                api_key=self._api_key,
                email=email,
                name=name,
                metadata={"userId": str(user_id)},
            )
        except stripe.StripeError as e:
            logger.error("stripe_customer_failed", user_id=user_id, error=str(e))
            raise ExternalServiceFailure(PAYMENT_ERROR_MESSAGE) from e
        return customer.id

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str | None,
        amount: float,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> str:
        if price_id:
            line_item: Dict[str, Any] = {"price": price_id, "quantity": 1}
        else:
            line_item = {
                "price_data": {
                    "currency": self._currency,
                    "unit_amount": int(round(amount * 100)),
                    "product_data": {"name": product_name},
                },
                "quantity": 1,
            }
        try:
            session = stripe.checkout.Session.create(
                api_key=self._api_key,
                customer=customer_id,
                line_items=[line_item],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error("stripe_checkout_failed", customer_id=customer_id, error=str(e))
            raise ExternalServiceFailure(PAYMENT_ERROR_MESSAGE) from e
        if not session.url:
            raise ExternalServiceFailure(PAYMENT_ERROR_MESSAGE)
        return session.url

    def parse_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self._webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
            return json.loads(body)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise InvalidInput("Invalid webhook signature") from e
