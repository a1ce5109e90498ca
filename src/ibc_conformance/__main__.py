"""
IBC transfer conformance CLI entry point.

Builds the topology described by a YAML file, runs the ICS-20 round-trip
scenario across it, and tears everything down again.

Usage::

    python -m ibc_conformance --topology topology.yaml
    python -m ibc_conformance --topology topology.yaml --amount 5000
    python -m ibc_conformance --topology topology.yaml --localnet
    python -m ibc_conformance --topology topology.yaml --cosmwasm cw_template.wasm

Options:
    --topology      Path to the topology YAML file (required)
    --amount        Override the transferred amount
    --localnet      Run against in-process chains and relayer
    --cosmwasm      Also run the counter contract check on the first chain
    --metrics-file  Write Prometheus metrics here after the run

Exit status is 0 when every check passes, 1 on a conformance failure,
and 2 when the topology or the contract file cannot be loaded.
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import logging
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from ibc_conformance.conformance.cosmwasm import WasmChain, conformance_cosmwasm
from ibc_conformance.interchain import (
    ExternalNetworkFactory,
    NetworkOrchestrator,
    RlyRelayerFactory,
    TopologySpec,
)
from ibc_conformance.localnet import CounterContract, LocalNetwork
from ibc_conformance.metrics import generate_metrics
from ibc_conformance.transfer import RoundTripReport, TransferConformanceRunner
from ibc_conformance.types import ConformanceError

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        return f"{timestamp} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure root logging for a CLI run."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)
    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # Per-request logs of the HTTP client drown out the scenario.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_orchestrator(
    spec: TopologySpec,
    localnet: bool,
    wasm_file: Path | None = None,
) -> NetworkOrchestrator:
    """
    Pick the factories for a run.

    Local runs use in-process chains and relayer. A local relayer can
    only link local chains, so a topology asking for one runs locally too.
    """
    if localnet or spec.relayer.kind == "local":
        contracts = {}
        if wasm_file is not None:
            contracts[hashlib.sha256(wasm_file.read_bytes()).hexdigest()] = CounterContract
        network = LocalNetwork(contracts=contracts)
        return NetworkOrchestrator(network, network)
    return NetworkOrchestrator(ExternalNetworkFactory(), RlyRelayerFactory())


async def run_conformance(
    spec: TopologySpec,
    localnet: bool = False,
    wasm_file: Path | None = None,
) -> RoundTripReport:
    """
    Build the topology, run every requested check, and tear it down.

    Raises:
        ConformanceError: On the first failed check.
    """
    if localnet:
        spec = spec.copy(relayer=spec.relayer.copy(kind="local"))

    orchestrator = build_orchestrator(spec, localnet, wasm_file)
    async with orchestrator.session(spec) as topology:
        report = await TransferConformanceRunner(topology).run()

        if wasm_file is not None:
            chain, _ = topology.pair
            if not isinstance(chain, WasmChain):
                raise ConformanceError(f"Chain {chain.config.chain_id} cannot run contracts")
            await conformance_cosmwasm(chain, topology.users[chain.config.chain_id], wasm_file)

    return report


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run, and return the exit status."""
    parser = argparse.ArgumentParser(
        description="ICS-20 transfer conformance across two chains",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--topology",
        type=Path,
        required=True,
        help="Path to the topology YAML file",
    )
    parser.add_argument(
        "--amount",
        type=int,
        default=None,
        help="Amount to transfer on each leg (overrides the topology file)",
    )
    parser.add_argument(
        "--localnet",
        action="store_true",
        help="Run against in-process chains and relayer",
    )
    parser.add_argument(
        "--cosmwasm",
        type=Path,
        default=None,
        help="Compiled counter contract to run on the first chain",
    )
    parser.add_argument(
        "--metrics-file",
        type=Path,
        default=None,
        help="Write Prometheus metrics to this file after the run",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    try:
        spec = TopologySpec.from_yaml_file(args.topology)
        if args.amount is not None:
            spec = spec.copy(transfer=spec.transfer.copy(amount=args.amount))
    except (OSError, yaml.YAMLError, ValidationError) as exc:
        logger.error("Cannot load topology %s: %s", args.topology, exc)
        return 2

    if args.cosmwasm is not None and not args.cosmwasm.is_file():
        logger.error("Contract file %s does not exist", args.cosmwasm)
        return 2

    status = 0
    try:
        report = asyncio.run(run_conformance(spec, args.localnet, args.cosmwasm))
    except ConformanceError as exc:
        logger.error("Conformance failed: %s", exc)
        status = 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        status = 1
    else:
        logger.info(
            "Round trip of %d passed: voucher %s, acks after %d and %d blocks",
            spec.transfer.amount,
            report.ibc_denom,
            report.outbound.ack_blocks,
            report.inbound.ack_blocks,
        )

    if args.metrics_file is not None:
        args.metrics_file.write_bytes(generate_metrics())

    return status


if __name__ == "__main__":
    sys.exit(main())
