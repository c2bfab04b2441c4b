#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
verify_errors.py
Error types raised while verifying contracts on a block explorer.
"""

from __future__ import annotations

from typing import Any, List


class VerifyError(Exception):
    """Base class for everything the verification pipeline raises on purpose."""


# ────────────────────────────────────────────────────────────────────────────────
# Configuration (fatal before any network call)
# ────────────────────────────────────────────────────────────────────────────────
class ConfigurationError(VerifyError):
    pass


class ArtifactNotFound(ConfigurationError):
    def __init__(self, contract_name: str, path: str):
        super().__init__(f"Could not find {contract_name} artifact at {path}")
        self.contract_name = contract_name
        self.path = path


class NetworkNotDeployed(ConfigurationError):
    def __init__(self, contract_name: str, network_id: str):
        super().__init__(
            f"No instance of contract {contract_name} found for network id {network_id}"
        )
        self.contract_name = contract_name
        self.network_id = network_id


class TooManyLibraries(ConfigurationError):
    def __init__(self, limit: int):
        super().__init__(f"Can not link more than {limit} libraries with the verification API")
        self.limit = limit


# ────────────────────────────────────────────────────────────────────────────────
# Source flattening (fatal for one contract)
# ────────────────────────────────────────────────────────────────────────────────
class SourceError(VerifyError):
    pass


class SourceNotFound(SourceError):
    def __init__(self, path: str, contract_name: str = ""):
        who = f"{contract_name} source file" if contract_name else "source file"
        super().__init__(f"Could not find {who} at {path}")
        self.path = path


class UnsupportedImportAlias(SourceError):
    def __init__(self, alias: str, path: str):
        super().__init__(
            f"Import alias {alias} in {path} is used in a way that can not be flattened "
            f"(only {alias}.<Name> member access is supported)"
        )
        self.alias = alias
        self.path = path


class DuplicateLicenseError(SourceError):
    def __init__(self, count: int):
        super().__init__(
            f"Found {count} SPDX-License-Identifiers in the Solidity code, "
            "please provide the correct license with --license <license identifier>"
        )
        self.count = count


# ────────────────────────────────────────────────────────────────────────────────
# Explorer API (fatal for one contract, never retried)
# ────────────────────────────────────────────────────────────────────────────────
class ApiUnreachable(VerifyError):
    def __init__(self, api_url: str, detail: str = ""):
        msg = f"Failed to connect to verification API at url {api_url}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)
        self.api_url = api_url


class VerificationRejected(VerifyError):
    """The explorer answered, but said no. The message is the explorer's own text."""


class VerificationTimeout(VerifyError):
    def __init__(self, address: str, waited_s: float):
        super().__init__(f"Gave up waiting for verification of {address} after {waited_s:.0f}s")
        self.address = address


class BatchVerificationFailed(VerifyError):
    def __init__(self, failed: List[str], result: Any = None):
        super().__init__(f"Failed to verify {len(failed)} contract(s): {', '.join(failed)}")
        self.failed = list(failed)
        self.result = result
