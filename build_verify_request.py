#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
build_verify_request.py
Map artifact + flattened source + options onto the form fields each explorer
family expects on its verify endpoint.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from config_loader import BLOCKSCOUT, ETHERSCAN, VerificationOptions
from load_artifacts import Artifact
from verify_errors import ConfigurationError, TooManyLibraries

log = logging.getLogger(__name__)

MAX_LIBRARIES = 5

# Etherscan "licenseType" codes
LICENSE_TYPES: Dict[str, int] = {
    "none": 1,
    "unlicensed": 1,
    "unlicense": 2,
    "mit": 3,
    "gpl-2.0": 4,
    "gpl-3.0": 5,
    "lgpl-2.1": 6,
    "lgpl-3.0": 7,
    "bsd-2-clause": 8,
    "bsd-3-clause": 9,
    "mpl-2.0": 10,
    "osl-3.0": 11,
    "apache-2.0": 12,
    "agpl-3.0": 13,
    "busl-1.1": 14,
}


def license_type(spdx: Optional[str]) -> int:
    return LICENSE_TYPES.get((spdx or "none").strip().lower(), 1)


def extract_compiler_version(artifact: Artifact) -> str:
    try:
        metadata = json.loads(artifact.metadata) if isinstance(artifact.metadata, str) else artifact.metadata
        return f"v{metadata['compiler']['version']}"
    except (ValueError, KeyError, TypeError) as e:
        raise ConfigurationError(
            f"Artifact {artifact.contract_name} has no compiler version in its metadata"
        ) from e


def link_libraries(
    links: Mapping[str, str],
    name_key: str,
    address_key: str,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, str]:
    """Assign linked libraries to numbered slots in link-table order."""
    logger = logger or log
    if len(links) > MAX_LIBRARIES:
        raise TooManyLibraries(MAX_LIBRARIES)
    fields: Dict[str, str] = {}
    for i, (name, address) in enumerate(links.items(), start=1):
        logger.debug(f"Adding {name} as a linked library at address {address}")
        fields[name_key.format(i)] = name
        fields[address_key.format(i)] = address
    return fields


def _strip_0x(hex_str: str) -> str:
    return hex_str[2:] if hex_str.lower().startswith("0x") else hex_str


def build_blockscout_request(
    artifact: Artifact,
    source: str,
    options: VerificationOptions,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    entry = artifact.network_entry(options.network_id)
    libraries = link_libraries(entry.get("links") or {}, "library{}Name", "library{}Address", logger)
    fields: Dict[str, Any] = {
        "module": "contract",
        "action": "verify",
        "addressHash": entry["address"],
        "contractSourceCode": source,
        "name": artifact.contract_name,
        "compilerVersion": extract_compiler_version(artifact),
        "optimization": "true" if options.optimization_used else "false",
        "optimizationRuns": options.runs,
        "autodetectConstructorArguments": "true",
        "evmVersion": options.evm_version or "default",
    }
    if options.constructor_args:
        fields["autodetectConstructorArguments"] = "false"
        fields["constructorArguments"] = _strip_0x(options.constructor_args)
    if options.api_key:
        fields["apikey"] = options.api_key
    fields.update(libraries)
    return fields


def build_etherscan_request(
    artifact: Artifact,
    source: str,
    options: VerificationOptions,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    entry = artifact.network_entry(options.network_id)
    fields: Dict[str, Any] = {
        "apikey": options.api_key,
        "module": "contract",
        "action": "verifysourcecode",
        "contractaddress": entry["address"],
        "sourceCode": source,
        "codeformat": "solidity-single-file",
        "contractname": artifact.contract_name,
        "compilerversion": extract_compiler_version(artifact),
        "optimizationUsed": 1 if options.optimization_used else 0,
        "runs": options.runs,
        "licenseType": license_type(options.license),
    }
    if options.evm_version and options.evm_version != "default":
        fields["evmversion"] = options.evm_version
    if options.constructor_args:
        fields["constructorArguements"] = _strip_0x(options.constructor_args)
    fields.update(link_libraries(entry.get("links") or {}, "libraryname{}", "libraryaddress{}", logger))
    return fields


def build_request(
    artifact: Artifact,
    source: str,
    options: VerificationOptions,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    if options.explorer == ETHERSCAN:
        return build_etherscan_request(artifact, source, options, logger)
    if options.explorer == BLOCKSCOUT:
        return build_blockscout_request(artifact, source, options, logger)
    raise ConfigurationError(f"Unknown explorer {options.explorer!r}")
