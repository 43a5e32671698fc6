"""
pg-bridge - Postgres LISTEN/NOTIFY to SNS, Kinesis and webhooks

This package forwards database notifications to external sinks:
- Static channel routing parsed from a single spec string
- Topic (SNS), webhook (HTTP POST) and buffered stream (Kinesis) sinks
- Concurrent, bounded fan-out dispatch
- Optional batching stage for bursty ingestion
- Recoverable listener with a health endpoint
"""

__version__ = "0.3.0"
__all__ = [
    "batch",
    "bridge",
    "config",
    "dispatcher",
    "exceptions",
    "health",
    "listener",
    "logging",
    "models",
    "routing",
    "sinks",
]
