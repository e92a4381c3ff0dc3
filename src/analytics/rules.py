"""
Classification rules mapping one interaction event to derived intents.

Rules:
- fraud_rule: high-value purchases raise a FraudAlert
- purchase_rule: every purchase yields a PurchaseProcessed receipt
- recommendation_rule: some product views yield a Recommendation

Each rule returns zero or one intent and touches no shared state. Rules that
branch on chance take an explicit RandomSource so outcomes can be fixed.
"""

import math
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from src.events.models import (
    DerivedIntent,
    EventType,
    FraudAlert,
    InteractionEvent,
    PurchaseProcessed,
    Recommendation,
)

DEFAULT_FRAUD_THRESHOLD = Decimal("400")
MAX_INTEREST_SCORE = math.nextafter(1.0, 0.0)
DEFAULT_DISCOUNT_PROBABILITY = 0.5
DEFAULT_RECOMMENDATION_PROBABILITY = 0.3
DEFAULT_RECOMMENDED_PRODUCTS = ("product_X", "product_Y")


class RandomSource(Protocol):
    """Anything that draws uniform floats in [0, 1), e.g. random.Random."""

    def random(self) -> float: ...


def fraud_rule(
    event: InteractionEvent,
    threshold: Decimal = DEFAULT_FRAUD_THRESHOLD,
) -> FraudAlert | None:
    """Flag purchases strictly above the threshold."""
    if event.event_type == EventType.PURCHASE.value and event.value > threshold:
        return FraudAlert(user_id=event.user_id, value=event.value, source_event=event)
    return None


def purchase_rule(
    event: InteractionEvent,
    rng: RandomSource,
    discount_probability: float = DEFAULT_DISCOUNT_PROBABILITY,
    category: str = "electronics",
) -> PurchaseProcessed | None:
    """Emit a receipt for every purchase; the discount flag is a coin flip."""
    if event.event_type != EventType.PURCHASE.value:
        return None

    return PurchaseProcessed(
        user_id=event.user_id,
        product_id=event.product_id,
        value=event.value,
        category=category,
        discount_applied=rng.random() < discount_probability,
    )


def recommendation_rule(
    event: InteractionEvent,
    rng: RandomSource,
    probability: float = DEFAULT_RECOMMENDATION_PROBABILITY,
    products: tuple[str, ...] | list[str] = DEFAULT_RECOMMENDED_PRODUCTS,
) -> Recommendation | None:
    """
    Recommend products for a fraction of product views.

    The gate draw comes first; the interest score is drawn only when the gate
    passes and lies in [0.5, 1.0).
    """
    if event.event_type != EventType.VIEW_PRODUCT.value:
        return None

    if rng.random() >= probability:
        return None

    return Recommendation(
        user_id=event.user_id,
        viewed_product=event.product_id,
        recommended_products=list(products),
        # Rounding can reach 1.0 for draws just below 1
        interest_score=min(0.5 + rng.random() * 0.5, MAX_INTEREST_SCORE),
    )


@dataclass
class ClassificationRules:
    """
    The configured rule set.

    Args:
        fraud_threshold: Purchase value above which a FraudAlert fires
        discount_probability: Chance that a processed purchase gets a discount
        recommendation_probability: Chance that a product view is recommended on
        recommended_products: Products offered in every recommendation
        purchase_category: Category stamped on processed purchases
        rng: Random source for the non-deterministic fields
    """

    fraud_threshold: Decimal = DEFAULT_FRAUD_THRESHOLD
    discount_probability: float = DEFAULT_DISCOUNT_PROBABILITY
    recommendation_probability: float = DEFAULT_RECOMMENDATION_PROBABILITY
    recommended_products: list[str] = field(default_factory=lambda: list(DEFAULT_RECOMMENDED_PRODUCTS))
    purchase_category: str = "electronics"
    rng: RandomSource = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        self.fraud_threshold = Decimal(str(self.fraud_threshold))

    @classmethod
    def from_settings(cls, settings, rng: RandomSource | None = None) -> "ClassificationRules":
        """Build the rule set from ProcessorSettings."""
        return cls(
            fraud_threshold=Decimal(str(settings.fraud_threshold)),
            discount_probability=settings.discount_probability,
            recommendation_probability=settings.recommendation_probability,
            recommended_products=list(settings.recommended_products),
            purchase_category=settings.purchase_category,
            rng=rng or random.Random(settings.random_seed),
        )

    def evaluate(self, event: InteractionEvent) -> list[DerivedIntent]:
        """Run every rule against the event and collect the intents produced."""
        candidates = [
            fraud_rule(event, self.fraud_threshold),
            purchase_rule(event, self.rng, self.discount_probability, self.purchase_category),
            recommendation_rule(
                event,
                self.rng,
                self.recommendation_probability,
                self.recommended_products,
            ),
        ]
        return [intent for intent in candidates if intent is not None]
