"""
Local network: chains and relayer factories backed by in-process chains.

One ``LocalNetwork`` acts as both the ``NetworkFactory`` and the
``RelayerFactory`` of an orchestrator, since the local relayer has to
reach the very chain objects the factory created.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from ibc_conformance.interchain.spec import ChainSpec, RelayerSpec
from ibc_conformance.types import InfrastructureError

from .chain import LocalChain
from .relayer import LocalRelayer
from .wasm import LocalContract

logger = logging.getLogger(__name__)


class LocalNetwork:
    """
    Creates local chains and the relayer joining them.

    Args:
        contracts: Contract logic by code checksum, shared by every chain.
    """

    def __init__(self, contracts: Mapping[str, type[LocalContract]] | None = None) -> None:
        self.contracts = dict(contracts or {})
        self.chains: dict[str, LocalChain] = {}

    async def create_network(self, spec: ChainSpec) -> LocalChain:
        existing = self.chains.get(spec.chain_id)
        if existing is not None and existing.is_running:
            raise InfrastructureError(f"Local chain {spec.chain_id} is already running")

        chain = LocalChain(spec.to_config(), block_time=spec.block_time, contracts=self.contracts)
        user = spec.wallet()
        chain.fund(user.address, spec.denom, spec.user_balance)
        chain.start()

        self.chains[spec.chain_id] = chain
        logger.info(
            "Local chain %s funded %s with %d%s",
            spec.chain_id,
            user.address,
            spec.user_balance,
            spec.denom,
        )
        return chain

    async def create_relayer(self, spec: RelayerSpec) -> LocalRelayer:
        return LocalRelayer(
            self,
            relay_interval=spec.relay_interval,
            deliver_acks=spec.deliver_acks,
            ack_delay_blocks=spec.ack_delay_blocks,
        )
