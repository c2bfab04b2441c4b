#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
verify_contracts.py
Verify a batch of Truffle-deployed contracts on Etherscan or Blockscout.

Usage:
    truffle-source-verify blockscout MyToken Vault@0xabc... --network xdai --license MIT
    truffle-source-verify etherscan MyToken --network rinkeby --debug
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pandas as pd
import requests
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from build_verify_request import build_request
from config_loader import (
    __version__,
    EXPLORERS,
    ETHERSCAN,
    NETWORK_EXPLORERS,
    VerificationOptions,
    load_host_config,
    parse_config,
    setup_logging,
)
from flatten_sources import flatten_source
from load_artifacts import load_artifact
from submit_verification import ExplorerClient, VerificationStatus
from verify_errors import BatchVerificationFailed, ConfigurationError

log = logging.getLogger("truffle-source-verify")


@dataclass
class BatchEntry:
    token: str
    status: VerificationStatus
    link: str = ""
    error: str = ""


@dataclass
class BatchResult:
    entries: List[BatchEntry] = field(default_factory=list)

    @property
    def failed(self) -> List[str]:
        return [e.token for e in self.entries if e.status is VerificationStatus.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"contract": e.token, "status": e.status.value, "link": e.link, "error": e.error} for e in self.entries],
            columns=["contract", "status", "link", "error"],
        )


def parse_contract_token(token: str) -> Tuple[str, Optional[str]]:
    name, _, address = token.partition("@")
    return name, (address or None)


def explorer_link(options: VerificationOptions, address: str) -> str:
    if options.explorer == ETHERSCAN:
        return f"{options.explorer_url}/address/{address}#code"
    return f"{options.explorer_url}/{address}/contracts"


def verify_contract(
    token: str,
    options: VerificationOptions,
    client: ExplorerClient,
    logger: logging.Logger,
) -> BatchEntry:
    name, address = parse_contract_token(token)
    artifact = load_artifact(name, options, logger)

    if address:
        logger.debug(f"Custom address {address} specified")
        artifact.override_address(options.network_id, address)

    # no deployment on this network → nothing to submit
    deployed_at = artifact.address(options.network_id)

    source = flatten_source(
        artifact.source_path,
        license=options.license,
        working_dir=str(options.working_dir),
        contract_name=artifact.contract_name,
        logger=logger,
    )
    fields = build_request(artifact, source, options, logger)
    status = client.verify(artifact, fields)
    return BatchEntry(token, status, link=explorer_link(options, deployed_at))


def verify_batch(
    tokens: Sequence[str],
    options: VerificationOptions,
    client: Optional[ExplorerClient] = None,
    logger: Optional[logging.Logger] = None,
) -> BatchResult:
    """
    Verify contracts one by one. A failing contract never stops the batch;
    BatchVerificationFailed is raised once at the end, naming every failure.
    """
    logger = logger or log
    own_client = client is None
    client = client or ExplorerClient(options, logger=logger)
    result = BatchResult()

    try:
        with logging_redirect_tqdm():
            for token in tqdm(tokens, desc="Verifying", unit="contract", disable=None):
                logger.info(f"Verifying {token}")
                try:
                    entry = verify_contract(token, options, client, logger)
                    logger.info(f"{entry.status.value}: {entry.link}")
                except Exception as e:
                    logger.error(str(e))
                    entry = BatchEntry(token, VerificationStatus.FAILED, error=str(e))
                result.entries.append(entry)
    finally:
        if own_client:
            client.close()

    if result.failed:
        raise BatchVerificationFailed(result.failed, result=result)

    logger.info(f"✅ Successfully verified {len(tokens)} contract(s).")
    return result


def write_report(result: BatchResult, path: str) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    result.to_frame().to_csv(out, index=False)
    log.info(f"✅ Saved verification report → {out} ({len(result.entries)} rows)")


def run(
    explorer: str,
    contracts: Sequence[str],
    network: str,
    license: Optional[str] = None,
    debug: bool = False,
    force_constructor_args: Optional[str] = None,
    working_dir: Optional[str] = None,
    config_path: Optional[str] = None,
    report_csv: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> int:
    try:
        host = load_host_config(network, working_dir, config_path)
        host.update(
            contracts=list(contracts),
            license=license,
            debug=debug,
            force_constructor_args=force_constructor_args,
        )
        options = parse_config(host, explorer)
    except ConfigurationError as e:
        log.error(str(e))
        return 1

    log.debug("DEBUG logging is turned ON")
    log.debug(f"Running truffle-source-verify v{__version__}")

    code = 0
    with ExplorerClient(options, session=session, logger=log) as client:
        try:
            result = verify_batch(contracts, options, client=client, logger=log)
        except BatchVerificationFailed as e:
            log.error(str(e))
            result = e.result
            code = 1

    if report_csv and result is not None:
        write_report(result, report_csv)
    return code


def verify(
    contract_names: Sequence[str],
    network: str,
    license: str = "UNLICENSED",
    working_dir: Optional[str] = None,
    config_path: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> Optional[int]:
    """Pick the explorer from a well-known network name and verify in-process."""
    explorer = NETWORK_EXPLORERS.get(network)
    if explorer is None:
        log.error(f'truffle-source-verify does not support network "{network}"')
        return None
    log.info(f"Verifying {len(contract_names)} contracts on {explorer}...")
    return run(
        explorer,
        contract_names,
        network,
        license=license,
        working_dir=working_dir,
        config_path=config_path,
        session=session,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="truffle-source-verify",
        description="Verify Truffle-deployed contracts on Etherscan or Blockscout.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("explorer", choices=EXPLORERS, help="Explorer family to submit to.")
    p.add_argument("contracts", nargs="*", metavar="name[@address]",
                   help="Contract names, optionally with an address override.")
    p.add_argument("--network", required=True, help="Truffle network name (e.g. xdai, rinkeby).")
    p.add_argument("--license", default=None, help="SPDX license id; replaces every SPDX header in the flattened source.")
    p.add_argument("--debug", action="store_true", help="Verbose logging, including the POST body.")
    p.add_argument("--forceConstructorArgs", dest="force_constructor_args", default=None,
                   help="ABI-encoded constructor arguments (hex) instead of autodetection.")
    p.add_argument("--config", default=None, help="JSON project config (default: truffle-config.json).")
    p.add_argument("--working-dir", default=None, help="Project root (default: current directory).")
    p.add_argument("--report-csv", default=None, help="Write one row per contract to this CSV file.")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)
    return run(
        args.explorer,
        args.contracts,
        args.network,
        license=args.license,
        debug=args.debug,
        force_constructor_args=args.force_constructor_args,
        working_dir=args.working_dir,
        config_path=args.config,
        report_csv=args.report_csv,
    )


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
