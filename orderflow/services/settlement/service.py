"""Payment settlement consumer logic.

Each queued reference is settled independently: decide, then apply the
decision with a compare-and-swap on `PENDING`. Duplicate deliveries fail the
condition and are counted as benign.
"""

import random
from datetime import datetime, timezone

from orderflow.common.events import EventEnvelope
from orderflow.common.logging import log_context, logger
from orderflow.common.metrics import settlement_decisions_total, settlement_outcomes_total
from orderflow.common.store import OrderStore, TransitionOutcome, TransitionResult
from orderflow.services.settlement.policy import (
    DEFAULT_REJECTION_RATE,
    ApprovalPolicy,
    RandomSource,
    decide,
)


class SettlementService:
    """Moves pending orders to APPROVED/REJECTED exactly once."""

    def __init__(
        self,
        store: OrderStore,
        policy: ApprovalPolicy = ApprovalPolicy.RANDOM,
        rng: RandomSource | None = None,
        rejection_rate: float = DEFAULT_REJECTION_RATE,
        service_name: str = "settlement",
    ) -> None:
        self.store = store
        self.policy = policy
        self.rng = rng or random.Random()
        self.rejection_rate = rejection_rate
        self.service_name = service_name

    def settle(self, order_id: str) -> TransitionResult:
        """Decide and conditionally apply the terminal status for one order."""

        status = decide(self.policy, self.rng, self.rejection_rate)
        result = self.store.transition_if_pending(order_id, status, datetime.now(timezone.utc))
        settlement_outcomes_total.labels(service=self.service_name, outcome=result.outcome.value).inc()

        if result.outcome is TransitionOutcome.APPLIED:
            settlement_decisions_total.labels(service=self.service_name, status=status.value).inc()
            logger.info("order_settled order_id=%s status=%s", order_id, status.value)
        elif result.outcome is TransitionOutcome.ALREADY_SETTLED:
            logger.info("order_already_settled order_id=%s", order_id)
        else:
            logger.error("order_settlement_failed order_id=%s error=%s", order_id, result.error)
        return result

    async def handle_batch(self, events: list[EventEnvelope]) -> None:
        """Settle every referenced order; one item's failure never stops the rest."""

        for event in events:
            order_id = event.payload.get("orderId") or event.aggregate_id
            with log_context(trace_id=event.trace_id, event_id=event.event_id, order_id=order_id):
                try:
                    if not order_id:
                        logger.error("settlement_event_missing_order_id event_type=%s", event.event_type)
                        continue
                    self.settle(order_id)
                except Exception:
                    logger.exception("settlement_item_failed order_id=%s", order_id)
