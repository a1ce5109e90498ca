"""
Topology specifications.

A topology file names the chains to bring up, the relayer that links
them, and the transfer scenario to run across the link. Example::

    path: ibc-path
    chains:
      - name: seda
        chain_id: seda-local-1
        denom: aseda
        bech32_prefix: seda
        rest_endpoint: http://localhost:1317
        rpc_endpoint: http://localhost:26657
        binary: sedad
        user: {key_name: user, address: seda1...}
      - name: gaia
        chain_id: gaia-local-1
        denom: uatom
        ...
    relayer:
      kind: rly
    transfer:
      amount: 1000
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import Field, field_validator, model_validator

from ibc_conformance.chain.handle import ChainConfig, Wallet
from ibc_conformance.transfer import config as transfer_config
from ibc_conformance.types import StrictBaseModel


class ChainSpec(StrictBaseModel):
    """How to reach (or create) one network."""

    name: str
    """Short name used by the relayer and in logs."""

    chain_id: str
    """Chain identifier."""

    denom: str
    """Native denomination."""

    bech32_prefix: str = "cosmos"
    """Address prefix."""

    gas_prices: str = ""
    """Minimum gas prices (e.g. '0.025uatom')."""

    gas_adjustment: float = Field(default=1.5, gt=0)
    """Gas simulation multiplier."""

    rest_endpoint: str = ""
    """Node REST (gRPC-gateway) URL. Required for external networks."""

    rpc_endpoint: str = ""
    """CometBFT RPC URL, used by the chain CLI and the relayer."""

    binary: str = ""
    """Chain CLI binary used to sign and broadcast (e.g. 'sedad')."""

    home: str = ""
    """Home directory holding the CLI keyring."""

    keyring_backend: str = "test"
    """Keyring backend passed to the CLI."""

    user: Wallet | None = None
    """Account the scenario transfers from and to."""

    user_balance: int = Field(default=transfer_config.GENESIS_WALLET_AMOUNT, gt=0)
    """Genesis balance of ``user`` on networks the harness creates."""

    relayer_key: str = "relayer"
    """Key name the relayer signs with on this chain."""

    relayer_mnemonic: str = ""
    """Mnemonic restored into the relayer keyring, when the key is not there yet."""

    block_time: float = Field(default=0.05, gt=0)
    """Seconds per block on networks the harness creates."""

    def to_config(self) -> ChainConfig:
        """The static identity handed to handles and the relayer."""
        return ChainConfig(
            name=self.name,
            chain_id=self.chain_id,
            denom=self.denom,
            bech32_prefix=self.bech32_prefix,
            gas_prices=self.gas_prices,
            gas_adjustment=self.gas_adjustment,
        )

    def wallet(self) -> Wallet:
        """The scenario account, or a deterministic local one when none is configured."""
        if self.user is not None:
            return self.user
        return Wallet(key_name="user", address=f"{self.bech32_prefix}1{self.name}user")

    def relayer_settings(self) -> dict[str, str]:
        """Connection settings passed to ``RelayerHandle.add_chain``."""
        settings = {"rpc_addr": self.rpc_endpoint, "key": self.relayer_key}
        if self.relayer_mnemonic:
            settings["mnemonic"] = self.relayer_mnemonic
        return settings


class RelayerSpec(StrictBaseModel):
    """Which relayer to run and how."""

    kind: Literal["rly", "local"] = "rly"
    """External Go relayer process, or the in-process local relayer."""

    binary: str = "rly"
    """Relayer binary."""

    home: str = ""
    """Relayer home directory. A temporary one is created when empty."""

    start_flags: list[str] = Field(
        default_factory=lambda: ["--processor", "events", "--block-history", "100"]
    )
    """Extra flags for ``rly start``."""

    relay_interval: float = Field(default=0.05, gt=0)
    """Seconds between relay passes of the local relayer."""

    deliver_acks: bool = True
    """Local relayer only: when False, packets are received but acks never return."""

    ack_delay_blocks: int = Field(default=0, ge=0)
    """Local relayer only: blocks an ack waits on the destination before it is relayed."""


class TransferScenario(StrictBaseModel):
    """Parameters of the round-trip transfer scenario."""

    amount: int = Field(default=transfer_config.DEFAULT_TRANSFER_AMOUNT, gt=0)
    """Amount sent on each leg, in the sender's smallest unit."""

    outbound_window: int = Field(default=transfer_config.OUTBOUND_ACK_WINDOW, gt=0)
    """Blocks the outbound ack may take."""

    return_window: int = Field(default=transfer_config.RETURN_ACK_WINDOW, gt=0)
    """Blocks the return ack may take."""

    settlement_blocks: int = Field(default=transfer_config.SETTLEMENT_BLOCKS, ge=0)
    """Blocks waited after each ack before balances are read."""

    startup_blocks: int = Field(default=transfer_config.STARTUP_BLOCKS, ge=0)
    """Blocks waited before the first snapshot."""

    expected_initial_balance: int | None = None
    """When set, both scenario accounts must hold exactly this much native denom at start."""

    @field_validator("amount", "expected_initial_balance", mode="before")
    @classmethod
    def reject_non_integers(cls, v: object) -> object:
        """Amounts are exact integers."""
        if v is None:
            return v
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"amount must be an integer, got {type(v).__name__}")
        return v


class TopologySpec(StrictBaseModel):
    """Two or more chains linked by one relayer path."""

    chains: list[ChainSpec] = Field(min_length=2)
    """Chains to bring up. The first two are the scenario's A and B."""

    relayer: RelayerSpec = Field(default_factory=RelayerSpec)
    """The relayer linking the first two chains."""

    path: str = transfer_config.DEFAULT_PATH
    """Name of the relayer path between the first two chains."""

    transfer: TransferScenario = Field(default_factory=TransferScenario)
    """Scenario parameters."""

    @model_validator(mode="after")
    def check_unique_chains(self) -> TopologySpec:
        """Chain ids and names identify chains to the relayer, so they must be unique."""
        ids = [chain.chain_id for chain in self.chains]
        names = [chain.name for chain in self.chains]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate chain ids: {ids}")
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate chain names: {names}")
        return self

    @property
    def pair(self) -> tuple[ChainSpec, ChainSpec]:
        """The two chains the path links."""
        return self.chains[0], self.chains[1]

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> TopologySpec:
        """
        Load a topology from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            pydantic.ValidationError: If the file does not describe a valid topology.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data)
