"""Kafka envelope + producer/consumer helpers.

This module standardizes event structure and the batch consumer loop that
feeds settlement. Delivery is at-least-once: offsets are committed only after
a batch has been handed to its handler.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable
from uuid import uuid4

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from pydantic import BaseModel, Field

from orderflow.common.config import settings
from orderflow.common.logging import logger
from orderflow.common.metrics import event_queue_delay_seconds


ORDER_CREATED = "orders.created"


class EventEnvelope(BaseModel):
    """Canonical event shape sent across Kafka topics."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    aggregate_id: str
    occurred_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    trace_id: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)


def order_created_event(order_id: str, trace_id: str = "") -> EventEnvelope:
    """Lightweight reference event; consumers re-read the order from the store."""

    return EventEnvelope(
        event_type=ORDER_CREATED,
        aggregate_id=order_id,
        trace_id=trace_id,
        payload={"orderId": order_id},
    )


class KafkaBus:
    """Lazy Kafka producer wrapper; one instance per process."""

    def __init__(self, bootstrap_servers: str) -> None:
        self.bootstrap_servers = bootstrap_servers
        self._producer: AIOKafkaProducer | None = None

    async def producer(self) -> AIOKafkaProducer:
        if self._producer is None:
            self._producer = AIOKafkaProducer(bootstrap_servers=self.bootstrap_servers)
            await self._producer.start()
        return self._producer

    async def publish(self, topic: str, event: EventEnvelope) -> None:
        producer = await self.producer()
        await producer.send_and_wait(
            topic,
            json.dumps(event.model_dump()).encode("utf-8"),
            key=event.aggregate_id.encode("utf-8"),
        )

    async def close(self) -> None:
        if self._producer:
            await self._producer.stop()
            self._producer = None


def _observe_delay(event: EventEnvelope, topic: str) -> None:
    try:
        occurred_at = datetime.fromisoformat(event.occurred_at.replace("Z", "+00:00"))
    except ValueError:
        return
    if occurred_at.tzinfo is None:
        occurred_at = occurred_at.replace(tzinfo=timezone.utc)
    delay_seconds = max(0.0, (datetime.now(timezone.utc) - occurred_at).total_seconds())
    event_queue_delay_seconds.labels(service=settings.service_name, topic=topic).observe(delay_seconds)


def decode_batch(raw_values: Iterable[bytes], topic: str) -> list[EventEnvelope]:
    """Parse raw message values into envelopes, dropping undecodable ones.

    A poison message is logged and skipped so it cannot hold back the rest of
    the batch.
    """

    events = []
    for raw in raw_values:
        try:
            event = EventEnvelope(**json.loads(raw.decode("utf-8")))
        except Exception as exc:
            logger.error("event_decode_failed topic=%s error=%s", topic, exc)
            continue
        _observe_delay(event, topic)
        events.append(event)
    return events


async def make_consumer(topic: str, group_id: str, bootstrap_servers: str) -> AIOKafkaConsumer:
    """Create a configured Kafka consumer for one topic/group."""

    consumer = AIOKafkaConsumer(
        topic,
        bootstrap_servers=bootstrap_servers,
        group_id=group_id,
        auto_offset_reset="earliest",
        enable_auto_commit=False,
    )
    await consumer.start()
    return consumer


async def consume_batches_forever(
    topic: str,
    group_id: str,
    bootstrap_servers: str,
    handler: Callable[[list[EventEnvelope]], Awaitable[None]],
    max_records: int = 50,
) -> None:
    """Continuously consume one topic and pass each polled batch to `handler`.

    The handler owns per-item error isolation; anything it lets escape is
    logged and the batch is still committed.
    """

    while True:
        consumer = None
        try:
            consumer = await make_consumer(topic, group_id, bootstrap_servers)
            while True:
                results = await consumer.getmany(timeout_ms=500, max_records=max_records)
                for partition, messages in results.items():
                    batch = decode_batch((msg.value for msg in messages), topic)
                    if not batch:
                        continue
                    logger.info(
                        "batch_received topic=%s group=%s partition=%s size=%s",
                        topic,
                        group_id,
                        partition.partition,
                        len(batch),
                    )
                    try:
                        await handler(batch)
                    except Exception as exc:
                        logger.error("batch_handler_error topic=%s group=%s error=%s", topic, group_id, exc)
                if results:
                    await consumer.commit()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("consumer_loop_error topic=%s group=%s error=%s", topic, group_id, exc)
            await asyncio.sleep(2)
        finally:
            if consumer is not None:
                await consumer.stop()
            await asyncio.sleep(0)
