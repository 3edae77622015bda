"""Assets worker: consumes Vulcan asset events and syncs the Graph Asset Inventory."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from pathlib import Path
from typing import Any

from .config import ConfigError, SyncConfig
from .inventory import Inventory, InventoryClient
from .logging_utils import configure_logging
from .reconciler import AssetReconciler
from .stream import StreamError, StreamProcessor
from .stream.kafka import build_kafka_processor
from .vulcan import VulcanClient

logger = logging.getLogger("graph_vulcan_assets.worker")


class AssetsWorker:
    def __init__(
        self,
        config: SyncConfig,
        *,
        processor: StreamProcessor | None = None,
        inventory: Inventory | None = None,
    ) -> None:
        self.config = config
        if processor is None:
            processor = build_kafka_processor(
                bootstrap_servers=config.kafka_bootstrap_servers,
                group_id=config.kafka_group_id,
                username=config.kafka_username or None,
                password=config.kafka_password or None,
                auto_commit_interval_ms=config.kafka_auto_commit_interval_ms,
            )
        if inventory is None:
            inventory = InventoryClient(
                config.inventory_endpoint,
                insecure_skip_verify=config.inventory_insecure_skip_verify,
            )
        self.processor = processor
        self.inventory = inventory
        self.vulcan = VulcanClient(processor)
        self.reconciler = AssetReconciler(
            inventory,
            aws_account_annotation=config.aws_account_annotation_key,
        )

    def run(self, stop: threading.Event) -> None:
        """Process asset events until ``stop`` is set.

        Stream errors are retried after ``retry_duration``. A zero
        ``retry_duration`` disables retries and the error is raised.
        """
        while not stop.is_set():
            try:
                self.vulcan.process_assets(stop, self.reconciler.handle)
            except StreamError as exc:
                if self.config.retry_duration <= 0:
                    raise
                logger.error("Assets worker processing error: %s", exc)
                logger.info("Assets worker retrying in %.3fs", self.config.retry_duration)
                stop.wait(self.config.retry_duration)
                continue
            # A clean return means the processor was cancelled or drained.
            break
        logger.info("Assets worker stopped")

    def close(self) -> None:
        close = getattr(self.processor, "close", None)
        if callable(close):
            close()


def _install_signal_handlers(stop: threading.Event) -> None:
    def _handler(signum: int, _frame: Any) -> None:
        logger.info("Assets worker received signal=%s, stopping", signum)
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Vulcan assets to Graph Asset Inventory sync worker")
    parser.add_argument("--profile", help="Path to a YAML profile (environment variables otherwise)")
    args = parser.parse_args(argv)

    try:
        config = SyncConfig.load(Path(args.profile)) if args.profile else SyncConfig.from_env()
    except ConfigError as exc:
        configure_logging("info")
        logger.error("Assets worker config error: %s", exc)
        return 2
    configure_logging(config.log_level)

    stop = threading.Event()
    _install_signal_handlers(stop)
    try:
        worker = AssetsWorker(config)
    except (StreamError, ValueError) as exc:
        logger.error("Assets worker setup failed: %s", exc)
        return 1
    try:
        worker.run(stop)
    except StreamError as exc:
        logger.error("Assets worker failed: %s", exc)
        return 1
    except Exception:
        logger.exception("Assets worker failed with an unexpected error")
        return 1
    finally:
        worker.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
