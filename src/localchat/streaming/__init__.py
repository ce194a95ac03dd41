"""Streaming module for localchat.

Consumes incremental engine output and publishes it to the conversation.
"""

from .aggregator import StreamAggregator, StreamOutcome, StreamStatus

__all__ = ["StreamAggregator", "StreamOutcome", "StreamStatus"]
