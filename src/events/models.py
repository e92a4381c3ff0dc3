"""
Event schema for the e-commerce interaction stream.

Models:
- InteractionEvent: one user interaction received from the input topic
- FraudAlert, PurchaseProcessed, Recommendation: derived intents, each bound
  to one outbound destination

Wire field names are camelCase; Python attributes are snake_case.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Monetary amounts stay exact in memory and are written as JSON numbers
Amount = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """Known interaction types. The event field itself stays an open string."""

    LOGIN = "login"
    VIEW_PRODUCT = "view_product"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    LOGOUT = "logout"


KNOWN_EVENT_TYPES = frozenset(t.value for t in EventType)


class Destination(str, Enum):
    """Logical outbound destinations, one per intent variant."""

    FRAUD_ALERTS = "fraud-alerts"
    PROCESSED_PURCHASES = "processed-purchases"
    RECOMMENDATIONS = "recommendations"


class InteractionEvent(BaseModel):
    """
    A single interaction received from the stream.

    Attributes:
        timestamp: ISO-8601 time the interaction happened
        user_id: Non-empty user identifier
        event_type: Interaction kind; unknown values are accepted
        product_id: Product involved, if any
        session_id: Browsing session identifier
        value: Monetary amount (not validated for sign)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    timestamp: str
    user_id: str = Field(..., alias="userId", min_length=1)
    event_type: str = Field(..., alias="eventType")
    product_id: str | None = Field(default=None, alias="productId")
    session_id: str = Field(..., alias="sessionId")
    value: Amount = Field(default=Decimal("0"))

    @property
    def is_known_type(self) -> bool:
        return self.event_type in KNOWN_EVENT_TYPES


class _Intent(BaseModel):
    """Common fields of every derived intent."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    destination: ClassVar[Destination]

    timestamp: datetime = Field(default_factory=utc_now)
    user_id: str = Field(..., alias="userId")

    @property
    def key(self) -> str:
        """Message key; derived events partition by user like their source."""
        return self.user_id


class FraudAlert(_Intent):
    destination: ClassVar[Destination] = Destination.FRAUD_ALERTS

    type: Literal["FRAUD_DETECTED"] = "FRAUD_DETECTED"
    value: Amount
    source_event: InteractionEvent = Field(..., alias="sourceEvent")


class PurchaseProcessed(_Intent):
    destination: ClassVar[Destination] = Destination.PROCESSED_PURCHASES

    type: Literal["PURCHASE_PROCESSED"] = "PURCHASE_PROCESSED"
    product_id: str | None = Field(default=None, alias="productId")
    value: Amount
    category: str = "electronics"
    discount_applied: bool = Field(..., alias="discountApplied")


class Recommendation(_Intent):
    destination: ClassVar[Destination] = Destination.RECOMMENDATIONS

    type: Literal["RECOMMENDATION"] = "RECOMMENDATION"
    viewed_product: str | None = Field(default=None, alias="viewedProduct")
    recommended_products: list[str] = Field(..., alias="recommendedProducts")
    interest_score: float = Field(..., alias="interestScore", ge=0.5, lt=1.0)


DerivedIntent = Annotated[
    Union[FraudAlert, PurchaseProcessed, Recommendation],
    Field(discriminator="type"),
]
