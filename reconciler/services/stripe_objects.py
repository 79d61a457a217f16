"""Narrow views over Stripe payloads.

Webhook payloads and API responses are loosely shaped: ids may arrive as
plain strings or as expanded objects, and some fields moved between Stripe
API versions. Each handler decodes the object it cares about exactly once
into one of these frozen dataclasses and works only against their fields.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def id_of(value) -> Optional[str]:
    """Return the id of a Stripe reference that may be a string or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def to_datetime(ts) -> Optional[datetime]:
    """Convert a Stripe unix timestamp to a timezone-aware datetime."""
    if ts:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    return None


def _first_item(obj):
    items = obj.get("items") or {}
    data = items.get("data") or []
    return data[0] if data else {}


@dataclass(frozen=True)
class InboundEvent:
    """A verified Stripe event, decoded from the raw request body."""

    id: str
    type: str
    payload: dict
    received_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def data_object(self) -> dict:
        return (self.payload.get("data") or {}).get("object") or {}

    @classmethod
    def from_payload(cls, payload: dict) -> "InboundEvent":
        if not isinstance(payload, dict):
            raise ValueError("Event payload must be a JSON object")
        event_id = payload.get("id")
        event_type = payload.get("type")
        if not isinstance(event_id, str) or not event_id:
            raise ValueError("Event payload has no id")
        if not isinstance(event_type, str) or not event_type:
            raise ValueError(f"Event {event_id} has no type")
        return cls(id=event_id, type=event_type, payload=payload)

    @classmethod
    def from_json(cls, body) -> "InboundEvent":
        try:
            payload = json.loads(body)
        except (TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Event body is not valid JSON: {e}") from e
        return cls.from_payload(payload)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    mode: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]
    payment_intent_id: Optional[str]
    customer_email: Optional[str]
    customer_name: Optional[str]
    amount_total: Optional[int]
    amount_subtotal: Optional[int]
    currency: Optional[str]
    payment_status: Optional[str]
    payment_method_type: Optional[str]
    shipping_name: Optional[str]
    shipping_address: Optional[dict]
    metadata: dict

    @property
    def user_id(self) -> Optional[str]:
        return self.metadata.get("userId") or self.metadata.get("user_id")

    @property
    def is_tier_upgrade(self) -> bool:
        return self.metadata.get("type") == "tier_upgrade"

    @property
    def new_tier(self) -> Optional[str]:
        return self.metadata.get("newTier")

    @property
    def discount_id(self) -> Optional[str]:
        return self.metadata.get("discountId")

    @classmethod
    def from_stripe(cls, obj: dict) -> "CheckoutSession":
        details = obj.get("customer_details") or {}
        # shipping_details moved under collected_information in newer API versions
        shipping = obj.get("shipping_details") or (
            (obj.get("collected_information") or {}).get("shipping_details")
        ) or {}
        method_types = obj.get("payment_method_types") or []
        return cls(
            id=obj["id"],
            mode=obj.get("mode"),
            customer_id=id_of(obj.get("customer")),
            subscription_id=id_of(obj.get("subscription")),
            payment_intent_id=id_of(obj.get("payment_intent")),
            customer_email=obj.get("customer_email") or details.get("email"),
            customer_name=details.get("name"),
            amount_total=obj.get("amount_total"),
            amount_subtotal=obj.get("amount_subtotal"),
            currency=obj.get("currency"),
            payment_status=obj.get("payment_status"),
            payment_method_type=method_types[0] if method_types else None,
            shipping_name=shipping.get("name") or details.get("name"),
            shipping_address=shipping.get("address"),
            metadata=dict(obj.get("metadata") or {}),
        )


@dataclass(frozen=True)
class SubscriptionSnapshot:
    id: str
    customer_id: Optional[str]
    status: str
    price_id: Optional[str]
    product_id: Optional[str]
    product_name: Optional[str]
    unit_amount: Optional[int]
    interval: Optional[str]
    currency: Optional[str]
    tier_key: Optional[str]
    size_key: Optional[str]
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]
    cancel_at_period_end: bool
    canceled_at: Optional[datetime]

    @property
    def plan_label(self) -> Optional[str]:
        if not self.tier_key:
            return None
        if self.size_key:
            return f"{self.tier_key} - {self.size_key}"
        return self.tier_key

    @classmethod
    def from_stripe(cls, obj: dict) -> "SubscriptionSnapshot":
        item = _first_item(obj)
        price = item.get("price") or {}
        product = price.get("product")
        metadata = obj.get("metadata") or {}

        # In newer Stripe API versions the period boundaries moved from the
        # subscription to items.data[0]. Check both locations.
        period_start = obj.get("current_period_start") or item.get("current_period_start")
        period_end = obj.get("current_period_end") or item.get("current_period_end")

        # Stripe uses cancel_at_period_end OR cancel_at (a future timestamp)
        # to indicate the subscription is set to cancel.
        is_cancelling = bool(
            obj.get("cancel_at_period_end", False)
            or obj.get("cancel_at") is not None
        )

        return cls(
            id=obj["id"],
            customer_id=id_of(obj.get("customer")),
            status=obj.get("status") or "incomplete",
            price_id=price.get("id"),
            product_id=id_of(product),
            product_name=product.get("name") if isinstance(product, dict) else None,
            unit_amount=price.get("unit_amount"),
            interval=(price.get("recurring") or {}).get("interval"),
            currency=price.get("currency") or obj.get("currency"),
            tier_key=metadata.get("tier_key") or metadata.get("tierKey"),
            size_key=metadata.get("size_key") or metadata.get("sizeKey"),
            current_period_start=to_datetime(period_start),
            current_period_end=to_datetime(period_end),
            cancel_at_period_end=is_cancelling,
            canceled_at=to_datetime(obj.get("canceled_at")),
        )


@dataclass(frozen=True)
class InvoiceSnapshot:
    id: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]
    customer_email: Optional[str]
    amount_due: Optional[int]
    currency: Optional[str]

    @classmethod
    def from_stripe(cls, obj: dict) -> "InvoiceSnapshot":
        subscription = obj.get("subscription")
        if not subscription:
            # Newer API versions nest the reference under parent.subscription_details
            details = (obj.get("parent") or {}).get("subscription_details") or {}
            subscription = details.get("subscription")
        return cls(
            id=obj.get("id"),
            customer_id=id_of(obj.get("customer")),
            subscription_id=id_of(subscription),
            customer_email=obj.get("customer_email"),
            amount_due=obj.get("amount_due"),
            currency=obj.get("currency"),
        )


@dataclass(frozen=True)
class PaymentIntentSnapshot:
    id: str
    customer_id: Optional[str]
    amount: int
    currency: Optional[str]
    price_id: str
    product_id: str
    size_key: Optional[str]

    @classmethod
    def from_stripe(cls, obj: dict) -> "PaymentIntentSnapshot":
        metadata = obj.get("metadata") or {}
        return cls(
            id=obj["id"],
            customer_id=id_of(obj.get("customer")),
            amount=obj.get("amount") or 0,
            currency=obj.get("currency"),
            price_id=metadata.get("priceId") or "",
            product_id=metadata.get("productId") or "",
            size_key=metadata.get("size_key") or metadata.get("sizeKey"),
        )


@dataclass(frozen=True)
class LineItem:
    price_id: Optional[str]
    quantity: int
    description: str
    amount_total: int

    @classmethod
    def from_stripe(cls, obj: dict) -> "LineItem":
        return cls(
            price_id=id_of(obj.get("price")),
            quantity=obj.get("quantity") or 1,
            description=obj.get("description") or "Product",
            amount_total=obj.get("amount_total") or 0,
        )


@dataclass(frozen=True)
class ChargeSnapshot:
    id: str
    payment_intent_id: Optional[str]
    amount: int
    amount_refunded: int
    currency: Optional[str]
    refund_reason: Optional[str]

    @property
    def fully_refunded(self) -> bool:
        return self.amount_refunded > 0 and self.amount_refunded >= self.amount

    @classmethod
    def from_stripe(cls, obj: dict) -> "ChargeSnapshot":
        refunds = (obj.get("refunds") or {}).get("data") or []
        return cls(
            id=obj["id"],
            payment_intent_id=id_of(obj.get("payment_intent")),
            amount=obj.get("amount") or 0,
            amount_refunded=obj.get("amount_refunded") or 0,
            currency=obj.get("currency"),
            refund_reason=refunds[0].get("reason") if refunds else None,
        )
