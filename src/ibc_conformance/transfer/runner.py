"""
ICS-20 round-trip conformance scenario.

The scenario sends native tokens from chain A to chain B, checks that A
was debited and B credited with the expected voucher denom, sends the
vouchers back, and checks that both accounts returned to where they
started. Every step is awaited in order::

    snapshot -> resolve channel -> submit A->B -> start relayer
      -> poll ack (window W1) -> settle -> derive denom -> verify
      -> submit B->A -> poll ack (window W2) -> settle -> verify

Waiting is bounded in blocks, never in wall-clock time. Failures raise
the matching ``ConformanceError`` and are never retried: a missing ack
is an ``AckTimeoutError``, and balances are only read once the ack has
been observed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ibc_conformance.metrics import registry as metrics
from ibc_conformance.testutil.poll import poll_for_ack, wait_for_blocks
from ibc_conformance.types import ConformanceError
from ibc_conformance.verify.balance import BalanceSnapshot, BalanceVerifier

from .denom import derive_ibc_denom
from .packet import PacketAcknowledgement, TransferOptions, TransferTx, WalletAmount

if TYPE_CHECKING:
    from ibc_conformance.chain.handle import ChainHandle, Wallet
    from ibc_conformance.interchain.orchestrator import LinkedTopology
    from ibc_conformance.interchain.spec import TransferScenario
    from ibc_conformance.relayer.handle import ChannelOutput

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LegReport:
    """What happened on one direction of the round trip."""

    source_chain_id: str
    """Chain the transfer was sent from."""

    destination_chain_id: str
    """Chain the transfer was sent to."""

    denom: str
    """Denom sent, as indexed on the source chain."""

    transfer: TransferTx
    """The submitted transaction and its packet."""

    ack: PacketAcknowledgement
    """The observed acknowledgment."""

    sender_balance: BalanceSnapshot
    """Sender's balance in ``denom`` after settlement."""

    receiver_balance: BalanceSnapshot
    """Receiver's balance in the received denom after settlement."""

    @property
    def ack_blocks(self) -> int:
        """Blocks between inclusion of the transfer and its ack."""
        return self.ack.height - self.transfer.height


@dataclass(frozen=True, slots=True)
class RoundTripReport:
    """Result of a passed round-trip scenario."""

    ibc_denom: str
    """Voucher denom of A's native token on B."""

    initial_a: BalanceSnapshot
    """A's native balance before the scenario."""

    initial_b: BalanceSnapshot
    """B's native balance before the scenario."""

    outbound: LegReport
    """The A -> B leg."""

    inbound: LegReport
    """The B -> A leg."""


class TransferConformanceRunner:
    """
    Runs the round-trip transfer scenario over a linked topology.

    Args:
        topology: The linked chains, relayer, and channel to use.
        scenario: Amount and waiting windows. Defaults to the topology's own.
        name: Scenario label used in metrics and logs.
    """

    def __init__(
        self,
        topology: LinkedTopology,
        scenario: TransferScenario | None = None,
        name: str = "ics20-round-trip",
    ) -> None:
        self.topology = topology
        self.scenario = topology.spec.transfer if scenario is None else scenario
        self.name = name

    async def run(self) -> RoundTripReport:
        """
        Execute the scenario.

        Returns:
            Per-leg packets, heights, and balances.

        Raises:
            TransferSubmitError: If a transfer is rejected.
            AckTimeoutError: If an ack does not land within its window.
            BalanceMismatchError: If a balance post-condition fails.
            QueryError: If a chain cannot be read.
        """
        try:
            report = await self._run()
        except ConformanceError as exc:
            metrics.scenarios_total.labels(scenario=self.name, outcome=type(exc).__name__).inc()
            logger.error("Scenario %s failed: %s", self.name, exc)
            raise

        metrics.scenarios_total.labels(scenario=self.name, outcome="passed").inc()
        logger.info("Scenario %s passed", self.name)
        return report

    async def _run(self) -> RoundTripReport:
        scenario = self.scenario
        chain_a, chain_b = self.topology.pair
        user_a = self.topology.users[chain_a.config.chain_id]
        user_b = self.topology.users[chain_b.config.chain_id]

        if scenario.startup_blocks:
            await wait_for_blocks(scenario.startup_blocks, chain_a, chain_b)

        initial_a = await BalanceSnapshot.take(chain_a, user_a.address, chain_a.config.denom)
        initial_b = await BalanceSnapshot.take(chain_b, user_b.address, chain_b.config.denom)

        if scenario.expected_initial_balance is not None:
            verifier = BalanceVerifier("initial-balances")
            verifier.assert_equal(initial_a, scenario.expected_initial_balance)
            verifier.assert_equal(initial_b, scenario.expected_initial_balance)
            verifier.verify()

        # Outbound: A's native denom leaves A and arrives on B as a voucher.
        channel_ab = self.topology.transfer_channel(
            chain_a.config.chain_id, chain_b.config.chain_id
        )
        transfer, ack = await self._send_leg(
            chain_a,
            chain_b,
            channel_ab,
            sender=user_a,
            receiver=user_b,
            denom=chain_a.config.denom,
            window=scenario.outbound_window,
        )

        counterparty = channel_ab.counterparty
        ibc_denom = derive_ibc_denom(
            counterparty.port_id, counterparty.channel_id, chain_a.config.denom
        )
        logger.info(
            "Voucher denom of %s on %s is %s",
            chain_a.config.denom,
            chain_b.config.chain_id,
            ibc_denom,
        )

        verifier = BalanceVerifier("outbound")
        sender_after = await BalanceSnapshot.take(chain_a, user_a.address, chain_a.config.denom)
        receiver_after = await BalanceSnapshot.take(chain_b, user_b.address, ibc_denom)
        verifier.assert_delta(initial_a, sender_after, -scenario.amount)
        verifier.assert_equal(receiver_after, scenario.amount)
        verifier.verify()

        outbound = LegReport(
            source_chain_id=chain_a.config.chain_id,
            destination_chain_id=chain_b.config.chain_id,
            denom=chain_a.config.denom,
            transfer=transfer,
            ack=ack,
            sender_balance=sender_after,
            receiver_balance=receiver_after,
        )

        # Return: the voucher goes back over the counterparty channel and unescrows on A.
        channel_ba = self.topology.transfer_channel(
            chain_b.config.chain_id, chain_a.config.chain_id
        )
        transfer, ack = await self._send_leg(
            chain_b,
            chain_a,
            channel_ba,
            sender=user_b,
            receiver=user_a,
            denom=ibc_denom,
            window=scenario.return_window,
        )

        verifier = BalanceVerifier("return")
        final_b = await BalanceSnapshot.take(chain_b, user_b.address, ibc_denom)
        final_a = await BalanceSnapshot.take(chain_a, user_a.address, chain_a.config.denom)
        verifier.assert_equal(final_a, initial_a.amount)
        verifier.assert_equal(final_b, 0)
        verifier.verify()

        inbound = LegReport(
            source_chain_id=chain_b.config.chain_id,
            destination_chain_id=chain_a.config.chain_id,
            denom=ibc_denom,
            transfer=transfer,
            ack=ack,
            sender_balance=final_b,
            receiver_balance=final_a,
        )

        return RoundTripReport(
            ibc_denom=ibc_denom,
            initial_a=initial_a,
            initial_b=initial_b,
            outbound=outbound,
            inbound=inbound,
        )

    async def _send_leg(
        self,
        source: ChainHandle,
        destination: ChainHandle,
        channel: ChannelOutput,
        *,
        sender: Wallet,
        receiver: Wallet,
        denom: str,
        window: int,
    ) -> tuple[TransferTx, PacketAcknowledgement]:
        """Submit one transfer and wait for its ack and the settlement buffer."""
        start_height = await source.height()
        amount = WalletAmount(address=receiver.address, denom=denom, amount=self.scenario.amount)

        transfer = await source.send_ibc_transfer(
            channel.channel_id, sender, amount, TransferOptions()
        )
        metrics.transfers_submitted.labels(chain_id=source.config.chain_id).inc()

        relayer = self.topology.relayer
        if not relayer.is_running:
            await relayer.start(self.topology.path)

        ack = await poll_for_ack(source, start_height, start_height + window, transfer.packet)
        await wait_for_blocks(self.scenario.settlement_blocks, source, destination)
        return transfer, ack
