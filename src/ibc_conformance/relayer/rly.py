"""
Relayer handle over the Go relayer (``rly``).

Every operation but ``start`` is a one-shot ``rly`` invocation against a
private home directory. ``start`` launches the long-running relaying
process, which is stopped explicitly on teardown.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Final

from pydantic import ValidationError

from ibc_conformance.chain.handle import ChainConfig
from ibc_conformance.types import RelayerError

from .handle import ChannelOutput

logger = logging.getLogger(__name__)

STARTUP_GRACE: Final[float] = 2.0
"""Seconds ``start`` waits to see whether the relaying process dies immediately."""

STOP_TIMEOUT: Final[float] = 10.0
"""Seconds to wait after SIGTERM before killing the relaying process."""

DEFAULT_START_FLAGS: Final[tuple[str, ...]] = ("--processor", "events", "--block-history", "100")
"""Flags passed to ``rly start``."""


class RlyRelayer:
    """
    ``RelayerHandle`` driving the ``rly`` binary.

    Args:
        binary: Path or name of the ``rly`` binary.
        home: Relayer home. When None, a temporary directory is created
            and removed again by ``close()``.
        start_flags: Extra flags for ``rly start``.
    """

    def __init__(
        self,
        binary: str = "rly",
        home: Path | None = None,
        start_flags: tuple[str, ...] | list[str] = DEFAULT_START_FLAGS,
    ) -> None:
        self.binary = binary
        self._owns_home = home is None
        self.home = Path(tempfile.mkdtemp(prefix="rly-")) if home is None else home
        self.start_flags = list(start_flags)
        self._chain_names: dict[str, str] = {}
        self._process: asyncio.subprocess.Process | None = None
        self._initialized = False

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def log_file(self) -> Path:
        """Where the output of ``rly start`` goes."""
        return self.home / "rly-start.log"

    async def _exec(self, *args: str) -> str:
        argv = [self.binary, *args, "--home", str(self.home)]
        command = " ".join([self.binary, *args])
        logger.debug("Running %s", command)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise RelayerError(command, output=str(exc)) from exc

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise RelayerError(
                command,
                exit_code=process.returncode,
                output=(stderr or stdout).decode(errors="replace").strip(),
            )
        return stdout.decode(errors="replace")

    def _name(self, chain_id: str) -> str:
        try:
            return self._chain_names[chain_id]
        except KeyError:
            raise RelayerError(f"lookup {chain_id}", output="chain was never added") from None

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    async def add_chain(self, chain: ChainConfig, **settings: str) -> None:
        """
        Register a chain.

        Recognized settings: ``rpc_addr`` (required), ``key`` (signing key
        name, default "relayer"), ``mnemonic`` (restored into the keyring
        when given).
        """
        if "rpc_addr" not in settings or not settings["rpc_addr"]:
            raise RelayerError(f"chains add {chain.name}", output="rpc_addr setting is required")

        if not self._initialized:
            await self._exec("config", "init")
            self._initialized = True

        key = settings.get("key", "relayer")
        chain_file = self.home / f"{chain.name}.json"
        chain_file.write_text(
            json.dumps(
                {
                    "type": "cosmos",
                    "value": {
                        "key": key,
                        "chain-id": chain.chain_id,
                        "rpc-addr": settings["rpc_addr"],
                        "account-prefix": chain.bech32_prefix,
                        "keyring-backend": "test",
                        "gas-adjustment": chain.gas_adjustment,
                        "gas-prices": chain.gas_prices,
                        "debug": False,
                        "timeout": "20s",
                        "output-format": "json",
                        "sign-mode": "direct",
                    },
                },
                indent=2,
            ),
            encoding="utf-8",
        )
        await self._exec("chains", "add", "--file", str(chain_file), chain.name)
        if settings.get("mnemonic"):
            await self._exec("keys", "restore", chain.name, key, settings["mnemonic"])

        self._chain_names[chain.chain_id] = chain.name
        logger.info("Relayer registered chain %s (%s)", chain.name, chain.chain_id)

    async def generate_path(self, src_chain_id: str, dst_chain_id: str, path: str) -> None:
        await self._exec("paths", "new", src_chain_id, dst_chain_id, path)

    async def link_path(self, path: str) -> None:
        logger.info("Linking path %s", path)
        await self._exec(
            "tx",
            "link",
            path,
            "--src-port",
            "transfer",
            "--dst-port",
            "transfer",
            "--order",
            "unordered",
            "--version",
            "ics20-1",
        )

    async def get_channels(self, chain_id: str) -> list[ChannelOutput]:
        output = await self._exec("q", "channels", self._name(chain_id))

        # One JSON object per line.
        channels = []
        for line in output.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                channels.append(ChannelOutput.model_validate_json(line))
            except ValidationError as exc:
                raise RelayerError(f"q channels {chain_id}", output=str(exc)) from exc
        return channels

    # -------------------------------------------------------------------------
    # Relaying
    # -------------------------------------------------------------------------

    async def start(self, path: str) -> None:
        if self.is_running:
            return

        command = " ".join([self.binary, "start", path, *self.start_flags])
        # rly logs every relay pass; a pipe nobody drains would stall it.
        try:
            with self.log_file.open("wb") as log:
                self._process = await asyncio.create_subprocess_exec(
                    self.binary,
                    "start",
                    path,
                    *self.start_flags,
                    "--home",
                    str(self.home),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=log,
                )
        except OSError as exc:
            raise RelayerError(command, output=str(exc)) from exc

        # A misconfigured relayer exits right away; a healthy one keeps running.
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._process.wait(), timeout=STARTUP_GRACE)

        if self._process.returncode is not None:
            exit_code = self._process.returncode
            self._process = None
            raise RelayerError(
                command,
                exit_code=exit_code,
                output=self.log_file.read_text(errors="replace").strip(),
            )

        logger.info(
            "Relayer started on path %s (pid %d), logging to %s",
            path,
            self._process.pid,
            self.log_file,
        )

    async def stop(self) -> None:
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return

        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=STOP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Relayer did not exit after SIGTERM, killing it")
            process.kill()
            await process.wait()
        logger.info("Relayer stopped")

    async def flush(self, path: str, channel_id: str) -> None:
        await self._exec("tx", "flush", path, channel_id)

    async def close(self) -> None:
        await self.stop()
        if self._owns_home:
            shutil.rmtree(self.home, ignore_errors=True)
