from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests

from config_loader import API_URLS, BLOCKSCOUT, EXPLORER_URLS, VerificationOptions

COMPILER = "0.8.4+commit.c7e474f2"

SIMPLE_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

contract {name} {{
    uint256 public value;
}}
"""


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Stands in for requests.Session; replies are consumed in order."""

    def __init__(self, post: Optional[List[Any]] = None, get: Optional[List[Any]] = None) -> None:
        self.post_replies = list(post or [])
        self.get_replies = list(get or [])
        self.posts: List[Dict[str, Any]] = []
        self.gets: List[Dict[str, Any]] = []
        self.headers: Dict[str, str] = {}
        self.closed = False

    @staticmethod
    def _reply(item: Any) -> FakeResponse:
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, FakeResponse):
            return item
        return FakeResponse(item)

    def post(self, url: str, timeout: Any = None, **kwargs: Any) -> FakeResponse:
        self.posts.append({"url": url, **kwargs})
        return self._reply(self.post_replies.pop(0))

    def get(self, url: str, timeout: Any = None, **kwargs: Any) -> FakeResponse:
        self.gets.append({"url": url, **kwargs})
        return self._reply(self.get_replies.pop(0))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_response() -> Callable[..., FakeResponse]:
    return FakeResponse


@pytest.fixture
def fake_session() -> Callable[..., FakeSession]:
    return FakeSession


@pytest.fixture
def connection_error() -> requests.ConnectionError:
    return requests.ConnectionError("connection refused")


@pytest.fixture
def make_options(tmp_path: Path) -> Callable[..., VerificationOptions]:
    def _make(**overrides: Any) -> VerificationOptions:
        base = VerificationOptions(
            explorer=BLOCKSCOUT,
            api_url=API_URLS[BLOCKSCOUT][100],
            explorer_url=EXPLORER_URLS[BLOCKSCOUT][100],
            network="xdai",
            network_id="100",
            working_dir=tmp_path,
            contracts_build_dir=tmp_path / "build" / "contracts",
        )
        return dataclasses.replace(base, **overrides)

    return _make


@pytest.fixture
def write_artifact(tmp_path: Path) -> Callable[..., Path]:
    def _write(
        name: str,
        address: Optional[str] = "0x" + "ab" * 20,
        links: Optional[Dict[str, str]] = None,
        network_id: str = "100",
        source: Optional[str] = None,
    ) -> Path:
        src = tmp_path / "contracts" / f"{name}.sol"
        src.parent.mkdir(parents=True, exist_ok=True)
        src.write_text(source if source is not None else SIMPLE_SOURCE.format(name=name), encoding="utf-8")

        networks: Dict[str, Any] = {}
        if address is not None:
            networks[network_id] = {"address": address, "links": links or {}}
        artifact = {
            "contractName": name,
            "sourcePath": str(src),
            "metadata": json.dumps({"compiler": {"version": COMPILER}, "language": "Solidity"}),
            "networks": networks,
        }
        out = tmp_path / "build" / "contracts" / f"{name}.json"
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(artifact), encoding="utf-8")
        return out

    return _write
