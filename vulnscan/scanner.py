"""Scanning an artifact with a scan driver."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from vulnscan.results import Results
from vulnscan.types import OS, ArtifactReference, ScanOptions

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """Raised when an artifact cannot be scanned."""


class Artifact(Protocol):
    def inspect(self) -> ArtifactReference: ...


class Driver(Protocol):
    def scan(
        self,
        target: str,
        image_id: str,
        layer_ids: Sequence[str],
        options: ScanOptions,
    ) -> tuple[Results, OS | None, bool]: ...


@dataclass
class Scanner:
    """Inspects an artifact and hands it to a driver, local or remote."""

    driver: Driver
    artifact: Artifact

    def scan_artifact(self, options: ScanOptions) -> Results:
        """Inspect the artifact and return its scan results."""
        try:
            reference = self.artifact.inspect()
        except Exception as e:
            raise ScanError(f"failed analysis: {e}") from e

        try:
            results, os_found, eosl = self.driver.scan(
                reference.name, reference.id, reference.blob_ids, options
            )
        except Exception as e:
            raise ScanError(f"scan failed: {e}") from e

        if eosl:
            family = os_found.family if os_found else ""
            name = os_found.name if os_found else ""
            logger.warning(
                "This OS version is no longer supported by the distribution: %s %s", family, name
            )
            logger.warning(
                "The vulnerability detection may be insufficient because security "
                "updates are not provided"
            )
        return results