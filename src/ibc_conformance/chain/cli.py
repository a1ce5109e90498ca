"""
Chain CLI invocation.

Transactions are signed and broadcast by the chain's own binary
(``sedad``, ``gaiad``, ...) with the keyring it already has. The harness
never handles keys itself.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from ibc_conformance.types import CommandError

from .handle import ChainConfig, Wallet

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChainCli:
    """Runs a chain binary against one node."""

    binary: str
    """Path or name of the chain binary."""

    chain: ChainConfig
    """Identity of the chain the binary talks to."""

    node: str = ""
    """CometBFT RPC URL passed as ``--node``."""

    home: str = ""
    """Home directory holding the keyring."""

    keyring_backend: str = "test"
    """Keyring backend."""

    extra_env: dict[str, str] = field(default_factory=dict)
    """Environment overrides for the child process."""

    def _common_flags(self) -> list[str]:
        flags = ["--chain-id", self.chain.chain_id, "--output", "json"]
        if self.node:
            flags += ["--node", self.node]
        if self.home:
            flags += ["--home", self.home]
        return flags

    def _tx_flags(self, sender: Wallet) -> list[str]:
        flags = [
            "--from",
            sender.key_name,
            "--keyring-backend",
            self.keyring_backend,
            "--gas",
            "auto",
            "--gas-adjustment",
            str(self.chain.gas_adjustment),
            "--broadcast-mode",
            "sync",
            "-y",
        ]
        if self.chain.gas_prices:
            flags += ["--gas-prices", self.chain.gas_prices]
        return flags

    async def run(self, *args: str) -> str:
        """
        Run the binary and return its stdout.

        Raises:
            CommandError: If the binary cannot be started or exits non-zero.
        """
        argv = [self.binary, *args]
        command = " ".join(argv)
        logger.debug("Running %s", command)

        env = None
        if self.extra_env:
            env = {**os.environ, **self.extra_env}

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise CommandError(command, output=str(exc)) from exc

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise CommandError(
                command,
                exit_code=process.returncode,
                output=(stderr or stdout).decode(errors="replace").strip(),
            )
        return stdout.decode(errors="replace")

    async def tx(self, sender: Wallet, *args: str) -> dict[str, Any]:
        """
        Sign and broadcast a transaction.

        Args:
            sender: Signing wallet.
            args: Module and message arguments (e.g. "bank", "send", ...).

        Returns:
            The broadcast response (``txhash``, ``code``, ``raw_log``).

        Raises:
            CommandError: If the binary fails or prints something that is not JSON.
        """
        output = await self.run("tx", *args, *self._tx_flags(sender), *self._common_flags())
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise CommandError(f"{self.binary} tx {' '.join(args)}", output=output) from exc
