"""
Factories that turn specs into running handles.

The orchestrator does not know how networks or relayers come to exist.
It asks a ``NetworkFactory`` for each chain and a ``RelayerFactory`` for
the relayer. Two families ship with the harness:

- ``ExternalNetworkFactory`` / ``RlyRelayerFactory``: attach to nodes
  someone else runs and drive the Go relayer.
- ``LocalNetwork`` (in ``localnet``): in-process chains and relayer.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Protocol

import httpx

from ibc_conformance.chain.cli import ChainCli
from ibc_conformance.chain.handle import NetworkHandle
from ibc_conformance.chain.rest import RestChain
from ibc_conformance.query.client import DEFAULT_TIMEOUT, NodeQueryClient
from ibc_conformance.relayer.handle import RelayerHandle
from ibc_conformance.relayer.rly import RlyRelayer
from ibc_conformance.types import InfrastructureError, QueryError

from .spec import ChainSpec, RelayerSpec

logger = logging.getLogger(__name__)


class NetworkFactory(Protocol):
    """Creates (or attaches to) one network."""

    async def create_network(self, spec: ChainSpec) -> NetworkHandle:
        """
        Bring up the network described by ``spec``.

        Raises:
            InfrastructureError: If the network cannot be started or reached.
        """
        ...


class RelayerFactory(Protocol):
    """Creates the relayer."""

    async def create_relayer(self, spec: RelayerSpec) -> RelayerHandle:
        """
        Create a relayer with no chains registered yet.

        Raises:
            InfrastructureError: If the relayer cannot be created.
        """
        ...


class ExternalNetworkFactory:
    """
    Attaches ``RestChain`` handles to already running nodes.

    Args:
        timeout: HTTP timeout for node queries, in seconds.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    async def create_network(self, spec: ChainSpec) -> NetworkHandle:
        if not spec.rest_endpoint:
            raise InfrastructureError(f"Chain {spec.name} has no rest_endpoint configured")

        config = spec.to_config()
        http = httpx.AsyncClient(timeout=self.timeout)
        query = NodeQueryClient(spec.rest_endpoint, http, spec.chain_id)
        cli = ChainCli(
            binary=spec.binary or f"{spec.name}d",
            chain=config,
            node=spec.rpc_endpoint,
            home=spec.home,
            keyring_backend=spec.keyring_backend,
        )

        try:
            height = await query.query_latest_height()
        except QueryError as exc:
            await http.aclose()
            raise InfrastructureError(f"Chain {spec.chain_id} unreachable: {exc.message}") from exc

        logger.info("Attached to %s at %s (height %d)", spec.chain_id, spec.rest_endpoint, height)
        return RestChain(config, query, cli)


class RlyRelayerFactory:
    """Creates ``RlyRelayer`` handles."""

    async def create_relayer(self, spec: RelayerSpec) -> RelayerHandle:
        if shutil.which(spec.binary) is None:
            raise InfrastructureError(f"Relayer binary {spec.binary!r} not found on PATH")
        home = Path(spec.home) if spec.home else None
        return RlyRelayer(binary=spec.binary, home=home, start_flags=spec.start_flags)
