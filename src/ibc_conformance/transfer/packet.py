"""
Transfer packets and the records the harness keeps about them.

A packet is created when a transfer is submitted and becomes terminal
once the source chain records its acknowledgment. The harness never
mutates a packet; it only observes the chains until the ack shows up.
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from pydantic import Field, field_validator

from ibc_conformance.types import StrictBaseModel


class WalletAmount(StrictBaseModel):
    """An amount of one denom addressed to a receiver."""

    address: str
    """Receiver address on the destination chain."""

    denom: str
    """Denom to send, as indexed on the sending chain."""

    amount: int = Field(gt=0)
    """Amount in the denom's smallest unit."""

    @field_validator("amount", mode="before")
    @classmethod
    def reject_non_integers(cls, v: object) -> object:
        """Amounts are exact integers; floats and bools are refused outright."""
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"amount must be an integer, got {type(v).__name__}")
        return v


class TransferOptions(StrictBaseModel):
    """Optional knobs for an ICS-20 transfer."""

    timeout_height: int | None = None
    """Absolute destination revision height after which the packet times out."""

    timeout_timestamp_ns: int | None = None
    """Absolute destination timestamp (ns) after which the packet times out."""

    memo: str = ""
    """Free-form memo carried in the packet data."""


class FungibleTokenPacketData(StrictBaseModel):
    """ICS-20 packet payload."""

    denom: str
    """Full denom path as seen by the sender (trace prefix included, never hashed)."""

    amount: int
    """Transferred amount."""

    sender: str
    """Sender address on the source chain."""

    receiver: str
    """Receiver address on the destination chain."""

    memo: str = ""
    """Optional memo."""

    @classmethod
    def from_json(cls, raw: str | bytes) -> FungibleTokenPacketData:
        """Decode packet data as emitted in ``send_packet`` events (amount as a string)."""
        data = json.loads(raw)
        return cls(
            denom=data["denom"],
            amount=int(data["amount"]),
            sender=data["sender"],
            receiver=data["receiver"],
            memo=data.get("memo", ""),
        )

    def to_json(self) -> str:
        """Encode the way ibc-go does: sorted keys, amount as a decimal string."""
        payload = {
            "amount": str(self.amount),
            "denom": self.denom,
            "receiver": self.receiver,
            "sender": self.sender,
        }
        if self.memo:
            payload["memo"] = self.memo
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class Packet(StrictBaseModel):
    """An in-flight (or acknowledged) transfer packet."""

    sequence: int = Field(ge=1)
    """Sequence number, unique and increasing per source channel."""

    source_port: str
    """Port on the sending chain."""

    source_channel: str
    """Channel on the sending chain."""

    destination_port: str
    """Port on the receiving chain."""

    destination_channel: str
    """Channel on the receiving chain."""

    data: FungibleTokenPacketData
    """Decoded payload."""

    timeout_height: int = 0
    """Destination revision height timeout (0 = none)."""

    timeout_timestamp_ns: int = 0
    """Destination timestamp timeout in ns (0 = none)."""

    @classmethod
    def from_send_packet_event(cls, attributes: Mapping[str, str]) -> Packet:
        """
        Build a packet from the attributes of a ``send_packet`` event.

        Args:
            attributes: Event attributes keyed by name.

        Raises:
            KeyError: If a required attribute is missing.
            ValueError: If a numeric attribute cannot be parsed.
        """
        # Timeout heights are encoded as "{revision_number}-{revision_height}".
        raw_timeout_height = attributes.get("packet_timeout_height", "0-0")
        _, _, revision_height = raw_timeout_height.partition("-")

        return cls(
            sequence=int(attributes["packet_sequence"]),
            source_port=attributes["packet_src_port"],
            source_channel=attributes["packet_src_channel"],
            destination_port=attributes["packet_dst_port"],
            destination_channel=attributes["packet_dst_channel"],
            data=FungibleTokenPacketData.from_json(attributes["packet_data"]),
            timeout_height=int(revision_height or 0),
            timeout_timestamp_ns=int(attributes.get("packet_timeout_timestamp", "0")),
        )

    def to_event_attributes(self) -> dict[str, str]:
        """Encode as the attributes of ``send_packet`` and related events."""
        return {
            "packet_data": self.data.to_json(),
            "packet_timeout_height": f"0-{self.timeout_height}",
            "packet_timeout_timestamp": str(self.timeout_timestamp_ns),
            "packet_sequence": str(self.sequence),
            "packet_src_port": self.source_port,
            "packet_src_channel": self.source_channel,
            "packet_dst_port": self.destination_port,
            "packet_dst_channel": self.destination_channel,
            "packet_channel_ordering": "ORDER_UNORDERED",
        }

    def matches_ack_event(self, attributes: Mapping[str, str]) -> bool:
        """Whether an ``acknowledge_packet`` event refers to this packet."""
        return (
            attributes.get("packet_sequence") == str(self.sequence)
            and attributes.get("packet_src_port") == self.source_port
            and attributes.get("packet_src_channel") == self.source_channel
        )


class TransferTx(StrictBaseModel):
    """Result of a successfully submitted transfer."""

    tx_hash: str
    """Transaction hash."""

    height: int
    """Height the transaction was included at."""

    packet: Packet
    """The packet the transfer created."""


class PacketAcknowledgement(StrictBaseModel):
    """Observation of an ack landing on the source chain."""

    packet: Packet
    """The acknowledged packet."""

    height: int
    """Source-chain height at which the ack was processed."""

    tx_hash: str = ""
    """Hash of the relayer transaction carrying the ack, when known."""
