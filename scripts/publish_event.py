"""Publish an `orders.created` reference for one order directly to Kafka.

Useful for re-driving settlement of an order whose created event was lost, and
for duplicate-delivery testing (settlement treats repeats as no-ops).
"""

import argparse
import asyncio
import json

from aiokafka import AIOKafkaProducer

from orderflow.common.events import ORDER_CREATED, order_created_event


async def publish(bootstrap_servers: str, topic: str, order_id: str, copies: int) -> None:
    """Open producer, publish the reference `copies` times, close producer."""

    producer = AIOKafkaProducer(bootstrap_servers=bootstrap_servers)
    await producer.start()
    try:
        for _ in range(copies):
            event = order_created_event(order_id, trace_id="manual-redrive")
            await producer.send_and_wait(
                topic,
                json.dumps(event.model_dump()).encode("utf-8"),
                key=order_id.encode("utf-8"),
            )
    finally:
        await producer.stop()


def main() -> None:
    """Parse CLI args and publish the reference."""

    parser = argparse.ArgumentParser(description="Publish an orders.created reference to Kafka.")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default=ORDER_CREATED)
    parser.add_argument("--order-id", required=True)
    parser.add_argument("--copies", type=int, default=1, help="Publish the same reference N times")
    args = parser.parse_args()

    if args.copies < 1:
        raise SystemExit("--copies must be at least 1")

    asyncio.run(publish(args.bootstrap_servers, args.topic, args.order_id, args.copies))
    print(f"Published {args.copies} reference(s) for order_id={args.order_id} to topic={args.topic}")


if __name__ == "__main__":
    main()
