"""
Global configuration for the conformance harness.

This module contains environment-specific settings that apply across all components.
"""

import os

_SUPPORTED_CONFORMANCE_ENVS: list[str] = ["devnet", "test"]

CONFORMANCE_ENV = os.environ.get("CONFORMANCE_ENV", "devnet").lower()
"""The environment flag ('devnet' or 'test'). Defaults to 'devnet' for real networks."""

if CONFORMANCE_ENV not in _SUPPORTED_CONFORMANCE_ENVS:
    raise ValueError(
        f"Invalid CONFORMANCE_ENV environment variable: '{CONFORMANCE_ENV}'. "
        f"Supported values: {_SUPPORTED_CONFORMANCE_ENVS}"
    )

POLL_INTERVAL: float = 1.0 if CONFORMANCE_ENV == "devnet" else 0.01
"""
Seconds to sleep between height checks while polling.

Real networks produce a block every few seconds, so one second keeps
query load low. The in-process test network produces blocks in
milliseconds.
"""
