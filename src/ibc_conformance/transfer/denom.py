"""
ICS-20 denomination traces.

When a fungible token crosses a channel, the receiving chain does not
mint the sender's denom directly. It mints a voucher whose identity
records the route the token took:

    {dest_port}/{dest_channel}/{base_denom}

That prefixed string is the *full denom path*. Chains index vouchers by
a fixed-size hash of the path instead of the path itself:

    ibc/{UPPERCASE_HEX(SHA256(full_denom_path))}

Sending the voucher back over the same channel unwinds one hop: the
prefix is stripped and the original escrowed tokens are released.

Everything in this module is pure. The harness uses the same function
to query the receiver's balance and to build the return transfer, so
identical inputs must always produce identical outputs.
"""

from __future__ import annotations

import hashlib

from ibc_conformance.types import StrictBaseModel

IBC_DENOM_PREFIX = "ibc/"
"""Prefix of hashed voucher denominations."""

CHANNEL_ID_PREFIX = "channel-"
"""Prefix of channel identifiers assigned by ibc-go."""


def is_valid_channel_id(identifier: str) -> bool:
    """
    Check whether an identifier has the ibc-go channel format.

    Channel identifiers are ``channel-{n}`` with ``n`` a non-negative
    decimal integer. The check is what separates path segments from a
    base denom that itself contains slashes (e.g. ``gamm/pool/1``).
    """
    if not identifier.startswith(CHANNEL_ID_PREFIX):
        return False
    suffix = identifier[len(CHANNEL_ID_PREFIX) :]
    return suffix.isdigit() and suffix.isascii()


def get_denom_prefix(port_id: str, channel_id: str) -> str:
    """Return the trace prefix ``{port}/{channel}/`` for one hop."""
    return f"{port_id}/{channel_id}/"


def get_prefixed_denom(port_id: str, channel_id: str, base_denom: str) -> str:
    """
    Prefix a denom with one hop of trace.

    Args:
        port_id: Port on the receiving side of the hop.
        channel_id: Channel on the receiving side of the hop.
        base_denom: The denom (possibly already prefixed) being received.

    Returns:
        The full denom path after the hop.
    """
    return f"{get_denom_prefix(port_id, channel_id)}{base_denom}"


def receiver_chain_is_source(source_port: str, source_channel: str, denom: str) -> bool:
    """
    Check whether the receiving chain originally issued ``denom``.

    A denom arriving with the sender-side prefix of this channel was
    minted here, sent out, and is now coming back: the receiver unescrows
    instead of minting a new voucher.
    """
    return denom.startswith(get_denom_prefix(source_port, source_channel))


class DenomTrace(StrictBaseModel):
    """
    The route a token took plus its denom on the issuing chain.

    A native token has an empty path.
    """

    path: str = ""
    """Alternating port/channel segments, outermost hop first (e.g. 'transfer/channel-0')."""

    base_denom: str
    """Denom on the issuing chain (e.g. 'aseda')."""

    def full_denom_path(self) -> str:
        """Return ``path/base_denom``, or just the base denom for native tokens."""
        if not self.path:
            return self.base_denom
        return f"{self.path}/{self.base_denom}"

    def hash(self) -> bytes:
        """SHA-256 of the full denom path."""
        return hashlib.sha256(self.full_denom_path().encode("utf-8")).digest()

    def ibc_denom(self) -> str:
        """
        Return the denom the holding chain indexes balances under.

        Native tokens keep their base denom. Vouchers use the hashed form.
        """
        if not self.path:
            return self.base_denom
        return f"{IBC_DENOM_PREFIX}{self.hash().hex().upper()}"

    def is_native(self) -> bool:
        """Whether the token was issued by the chain holding it."""
        return not self.path


def parse_denom_trace(raw_denom: str) -> DenomTrace:
    """
    Split a full denom path into its trace and base denom.

    Consumes ``port/channel`` pairs from the left while the second
    element of the pair is a valid channel identifier. Whatever remains
    (slashes included) is the base denom.

    Args:
        raw_denom: A native denom or a full denom path.

    Returns:
        The parsed trace.
    """
    segments = raw_denom.split("/")

    # No slash at all: a plain native denom.
    if len(segments) == 1:
        return DenomTrace(path="", base_denom=raw_denom)

    path_segments: list[str] = []
    base_segments: list[str] = []
    length = len(segments)
    for i in range(0, length, 2):
        # A pair only counts as a hop when a base denom is left after it.
        if i < length - 1 and length > 2 and is_valid_channel_id(segments[i + 1]):
            path_segments.extend(segments[i : i + 2])
        else:
            base_segments = segments[i:]
            break

    return DenomTrace(path="/".join(path_segments), base_denom="/".join(base_segments))


def derive_ibc_denom(port_id: str, channel_id: str, base_denom: str) -> str:
    """
    Derive the receiving chain's denom for a token sent over one channel.

    Args:
        port_id: Port on the receiving (destination) side.
        channel_id: Channel on the receiving (destination) side.
        base_denom: Denom of the token on the sending chain.

    Returns:
        The ``ibc/{HASH}`` denom the receiver holds the voucher under.
    """
    return parse_denom_trace(get_prefixed_denom(port_id, channel_id, base_denom)).ibc_denom()
