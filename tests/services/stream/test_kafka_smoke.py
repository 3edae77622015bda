from __future__ import annotations

import os
import threading
import uuid

import pytest

from graph_vulcan_assets.stream import Message
from graph_vulcan_assets.stream.kafka import build_kafka_processor

pytestmark = pytest.mark.skipif(
    not os.getenv("KAFKA_BOOTSTRAP_SERVERS"),
    reason="KAFKA_BOOTSTRAP_SERVERS not set",
)


def test_kafka_processor_reads_produced_message() -> None:
    from confluent_kafka import Producer

    bootstrap = os.environ["KAFKA_BOOTSTRAP_SERVERS"]
    topic = f"graph-vulcan-assets-smoke-{uuid.uuid4().hex[:8]}"
    producer = Producer({"bootstrap.servers": bootstrap})
    producer.produce(topic, key=b"key", value=b"value", headers=[("version", b"0.1.0")])
    producer.flush(10)

    processor = build_kafka_processor(
        bootstrap_servers=bootstrap,
        group_id=f"graph-vulcan-assets-smoke-{uuid.uuid4().hex[:8]}",
    )
    cancel = threading.Event()
    received: list[Message] = []
    timer = threading.Timer(30.0, cancel.set)

    def _handler(msg: Message) -> None:
        received.append(msg)
        cancel.set()

    timer.start()
    try:
        processor.process(cancel, topic, _handler)
    finally:
        timer.cancel()
        processor.close()

    assert received
    assert received[0].key == b"key"
    assert received[0].value == b"value"
    assert received[0].metadata[0].key == b"version"
