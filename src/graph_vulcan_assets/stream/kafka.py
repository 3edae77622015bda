"""Kafka stream processor with at-least-once semantics (confluent-kafka)."""

from __future__ import annotations

import logging
import threading
from typing import Any

from confluent_kafka import Consumer, KafkaError, KafkaException

from . import Message, MetadataEntry, MsgHandler, StreamError

logger = logging.getLogger("graph_vulcan_assets.stream.kafka")

DEFAULT_POLL_TIMEOUT_SECONDS = 0.1

# Errors reported through poll() that only mean "nothing to read right now".
_NON_ERROR_CODES = {KafkaError._PARTITION_EOF, KafkaError._TIMED_OUT}


def _strip_scheme(value: str) -> str:
    v = value.strip()
    for prefix in ("SASL_SSL://", "PLAINTEXT://", "SSL://"):
        if v.upper().startswith(prefix):
            return v[len(prefix) :]
    return v


def _processor_conf(config: dict[str, Any]) -> dict[str, Any]:
    conf = dict(config)
    # librdkafka commits stored offsets in a background thread. Disabling the
    # automatic offset store means only offsets stored after the handler
    # returned are ever committed.
    conf["enable.auto.commit"] = True
    conf["enable.auto.offset.store"] = False
    return conf


class AloProcessor:
    """Processes the messages of a Kafka topic ensuring at-least-once semantics.

    A message offset is stored only after the handler returned without raising,
    so a crash or an error makes the broker redeliver every message that was not
    fully handled. Stored offsets are committed asynchronously, which means
    already handled messages may also be redelivered.
    """

    def __init__(
        self,
        config: dict[str, Any],
        *,
        consumer: Any | None = None,
        poll_timeout_seconds: float = DEFAULT_POLL_TIMEOUT_SECONDS,
    ) -> None:
        self.poll_timeout_seconds = max(0.01, float(poll_timeout_seconds))
        if consumer is not None:
            self._consumer = consumer
            return
        try:
            self._consumer = Consumer(_processor_conf(config))
        except (KafkaException, ValueError, TypeError) as exc:
            raise StreamError(f"KAFKA_CONSUMER_CREATE_FAILED:{exc}") from exc

    def process(self, cancel: threading.Event, entity: str, handler: MsgHandler) -> None:
        """Handle the messages of topic ``entity`` until ``cancel`` is set.

        Replaces the current subscription, so it must not be called
        concurrently. Returns normally on cancellation and raises
        :class:`StreamError` on broker, handler or offset storage errors.
        """
        try:
            self._consumer.subscribe([entity])
        except (KafkaException, RuntimeError) as exc:
            raise StreamError(f"KAFKA_SUBSCRIBE_FAILED topic={entity}:{exc}") from exc
        logger.info("Kafka processor subscribed topic=%s", entity)

        while True:
            if cancel.is_set():
                logger.info("Kafka processor cancelled topic=%s", entity)
                return

            # A closed consumer raises RuntimeError rather than KafkaException.
            try:
                kmsg = self._consumer.poll(timeout=self.poll_timeout_seconds)
            except (KafkaException, RuntimeError) as exc:
                raise StreamError(f"KAFKA_READ_FAILED topic={entity}:{exc}") from exc
            if kmsg is None:
                continue
            err = kmsg.error()
            if err is not None:
                if err.code() in _NON_ERROR_CODES:
                    continue
                raise StreamError(f"KAFKA_READ_FAILED topic={entity}:{err}")

            msg = _to_message(kmsg)
            try:
                handler(msg)
            except Exception as exc:
                logger.warning(
                    "Kafka handler failed topic=%s partition=%s offset=%s detail=%s",
                    kmsg.topic(),
                    kmsg.partition(),
                    kmsg.offset(),
                    str(exc)[:256],
                )
                raise StreamError(f"error processing message: {exc}") from exc

            try:
                self._consumer.store_offsets(message=kmsg)
            except (KafkaException, RuntimeError) as exc:
                raise StreamError(f"KAFKA_OFFSET_STORE_FAILED topic={entity}:{exc}") from exc

    def close(self) -> None:
        self._consumer.close()


def build_kafka_processor(
    *,
    bootstrap_servers: str,
    group_id: str,
    username: str | None = None,
    password: str | None = None,
    auto_commit_interval_ms: int | None = None,
) -> AloProcessor:
    if not bootstrap_servers.strip():
        raise StreamError("KAFKA_BOOTSTRAP_SERVERS_MISSING")
    config: dict[str, Any] = {
        "bootstrap.servers": _strip_scheme(bootstrap_servers),
        "group.id": group_id,
        "auto.offset.reset": "earliest",
    }
    if auto_commit_interval_ms is not None:
        config["auto.commit.interval.ms"] = max(0, int(auto_commit_interval_ms))
    if username and password:
        config["security.protocol"] = "sasl_ssl"
        config["sasl.mechanisms"] = "SCRAM-SHA-256"
        config["sasl.username"] = username
        config["sasl.password"] = password
    return AloProcessor(config)


def _to_message(kmsg: Any) -> Message:
    metadata = tuple(
        MetadataEntry(key=_as_bytes(key), value=_as_bytes(value))
        for key, value in (kmsg.headers() or [])
    )
    return Message(key=kmsg.key(), value=kmsg.value(), metadata=metadata)


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")
