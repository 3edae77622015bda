"""
Top-level package for graph-vulcan-assets.

The worker consumes the Vulcan asset stream (`vulcan`) through an
at-least-once Kafka processor (`stream`) and reconciles every event into the
Graph Asset Inventory (`inventory`) via `reconciler`.
"""

__all__: list[str] = []
