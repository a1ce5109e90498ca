"""Waiting primitives shared by scenarios and tests."""

from .poll import PollOutcome, poll_for_ack, poll_until, wait_for_blocks

__all__ = [
    "PollOutcome",
    "poll_for_ack",
    "poll_until",
    "wait_for_blocks",
]
