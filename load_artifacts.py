#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
load_artifacts.py
Read Truffle build artifacts ({build_dir}/{ContractName}.json).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from config_loader import VerificationOptions
from verify_errors import ArtifactNotFound, ConfigurationError, NetworkNotDeployed

log = logging.getLogger(__name__)


@dataclass
class Artifact:
    contract_name: str
    source_path: str
    metadata: str
    networks: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Artifact":
        return cls(
            contract_name=str(data.get("contractName") or ""),
            source_path=str(data.get("sourcePath") or ""),
            metadata=data.get("metadata") or "{}",
            networks={str(k): dict(v or {}) for k, v in (data.get("networks") or {}).items()},
            raw=data,
        )

    def network_entry(self, network_id: str) -> Dict[str, Any]:
        entry = self.networks.get(str(network_id))
        if not entry or not entry.get("address"):
            raise NetworkNotDeployed(self.contract_name, str(network_id))
        return entry

    def override_address(self, network_id: str, address: str) -> None:
        self.networks.setdefault(str(network_id), {})["address"] = address

    def address(self, network_id: str) -> str:
        return self.network_entry(network_id)["address"]

    def links(self, network_id: str) -> Dict[str, str]:
        return dict(self.network_entry(network_id).get("links") or {})


def artifact_path(contract_name: str, build_dir: Path) -> Path:
    return (Path(build_dir) / f"{contract_name}.json").resolve()


def load_artifact(
    contract_name: str,
    options: VerificationOptions,
    logger: Optional[logging.Logger] = None,
) -> Artifact:
    """Parse the artifact from disk every time so per-contract edits never leak."""
    logger = logger or log
    path = artifact_path(contract_name, options.contracts_build_dir)
    logger.debug(f"Reading artifact file at {path}")
    if not path.exists():
        raise ArtifactNotFound(contract_name, str(path))

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Artifact {path} is not valid JSON: {e}") from e

    artifact = Artifact.from_json(data)
    if not artifact.contract_name:
        artifact.contract_name = contract_name
    if artifact.source_path and not Path(artifact.source_path).is_absolute():
        artifact.source_path = str(Path(options.working_dir) / artifact.source_path)
    return artifact
