#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
submit_verification.py
POST a verify request to the explorer and wait until it confirms.

Blockscout confirms either inline or by the contract's source code showing up
on getsourcecode. Etherscan hands back a GUID first, which is polled on
checkverifystatus. Neither loop has a built-in limit: unless poll_timeout is
set, it waits until the explorer answers or the process is interrupted.
"""

from __future__ import annotations

import json
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests

from config_loader import ETHERSCAN, PACKAGE, VerificationOptions, __version__
from load_artifacts import Artifact
from verify_errors import ApiUnreachable, VerificationRejected, VerificationTimeout

log = logging.getLogger(__name__)

USER_AGENT = f"{PACKAGE}/{__version__}"
PENDING = "pending in queue"
PASS_VERIFIED = "pass - verified"
ALREADY_VERIFIED = "already verified"


class VerificationStatus(str, Enum):
    FAILED = "Fail - Unable to verify"
    VERIFIED = "Verified"
    ALREADY_VERIFIED = "Already verified"


def has_source_code(data: Any) -> bool:
    """True when a response's result (a record or a one-item list) carries SourceCode."""
    if not isinstance(data, dict):
        return False
    result = data.get("result")
    if isinstance(result, list):
        result = result[0] if result else None
    if not isinstance(result, dict):
        return False
    return len(str(result.get("SourceCode") or "").strip()) > 0


def _text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value) if value is not None else ""


class ExplorerClient:
    def __init__(
        self,
        options: VerificationOptions,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self.options = options
        self.owns_session = session is None
        self.session = session or requests.Session()
        if self.owns_session:
            self.session.headers.update({"User-Agent": USER_AGENT})
        self.sleep = sleep
        self.clock = clock
        self.log = logger or log

    def close(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self.owns_session:
            self.session.close()

    def __enter__(self) -> "ExplorerClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ────────────────────────────────────────────────────────────────────────
    # HTTP
    # ────────────────────────────────────────────────────────────────────────
    def _json(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        url = self.options.api_url
        r = None
        try:
            if method == "POST":
                r = self.session.post(url, timeout=self.options.http_timeout, **kwargs)
            else:
                r = self.session.get(url, timeout=self.options.http_timeout, **kwargs)
            data = r.json()
        except requests.RequestException as e:
            self.log.debug(str(e))
            raise ApiUnreachable(url, type(e).__name__) from e
        except ValueError as e:
            raise ApiUnreachable(url, f"HTTP {getattr(r, 'status_code', '?')}, response is not JSON") from e
        if not isinstance(data, dict):
            raise ApiUnreachable(url, f"unexpected response {data!r}")
        return data

    def submit(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug("Sending verify request with POST arguments:")
            shown = {k: ("<hidden>" if k == "apikey" else v) for k, v in fields.items()}
            self.log.debug(json.dumps(shown, indent=2, default=str))
        return self._json("POST", data=fields)

    def _query(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.options.api_key:
            params = {**params, "apikey": self.options.api_key}
        return self._json("GET", params=params)

    # ────────────────────────────────────────────────────────────────────────
    # Polling
    # ────────────────────────────────────────────────────────────────────────
    def _poll(self, address: str, check: Callable[[], Optional[VerificationStatus]]) -> VerificationStatus:
        started = self.clock()
        while True:
            self.sleep(self.options.poll_interval)
            status = check()
            if status is not None:
                return status
            waited = self.clock() - started
            if self.options.poll_timeout is not None and waited >= self.options.poll_timeout:
                raise VerificationTimeout(address, waited)

    def wait_for_source_code(self, address: str) -> VerificationStatus:
        self.log.debug(f"Checking status of verification request for {address}")

        def check() -> Optional[VerificationStatus]:
            data = self._query({
                "module": "contract",
                "action": "getsourcecode",
                "address": address,
                "ignoreProxy": 1,
            })
            if has_source_code(data):
                self.log.debug(f"Contract at {address} verified")
                return VerificationStatus.VERIFIED
            return None

        return self._poll(address, check)

    def wait_for_guid(self, guid: str, address: str) -> VerificationStatus:
        self.log.debug(f"Checking status of verification request {guid}")

        def check() -> Optional[VerificationStatus]:
            data = self._query({"module": "contract", "action": "checkverifystatus", "guid": guid})
            result = _text(data.get("result"))
            lowered = result.lower()
            if PENDING in lowered:
                return None
            if PASS_VERIFIED in lowered:
                self.log.debug(f"Contract at {address} verified")
                return VerificationStatus.VERIFIED
            if ALREADY_VERIFIED in lowered:
                return VerificationStatus.ALREADY_VERIFIED
            if str(data.get("status")) != "1":
                raise VerificationRejected(result or _text(data.get("message")))
            return None

        return self._poll(address, check)

    # ────────────────────────────────────────────────────────────────────────
    # Submit → interpret → poll
    # ────────────────────────────────────────────────────────────────────────
    def verify(self, artifact: Artifact, fields: Dict[str, Any]) -> VerificationStatus:
        address = artifact.address(self.options.network_id)
        data = self.submit(fields)

        message = _text(data.get("message"))
        result = data.get("result")
        if ALREADY_VERIFIED in message.lower() or (
            isinstance(result, str) and ALREADY_VERIFIED in result.lower()
        ):
            return VerificationStatus.ALREADY_VERIFIED

        if str(data.get("status")) != "1":
            raise VerificationRejected(_text(result) or message or "Verification request rejected")

        if has_source_code(data):
            return VerificationStatus.VERIFIED

        if self.options.explorer == ETHERSCAN:
            if not isinstance(result, str) or not result:
                raise VerificationRejected(f"Explorer returned no verification GUID: {_text(result)}")
            return self.wait_for_guid(result, address)
        return self.wait_for_source_code(address)
