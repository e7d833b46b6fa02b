"""Server side of remote scanning: the scan and cache services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from vulnscan.convert import (
    from_rpc_put_artifact_request,
    from_rpc_put_blob_request,
    to_rpc_scan_response,
)
from vulnscan.results import Results
from vulnscan.rpcmodels import (
    MissingBlobsRequest,
    MissingBlobsResponse,
    PutArtifactRequest,
    PutBlobRequest,
    ScanRequest,
    ScanResponse,
)
from vulnscan.types import (
    OS,
    ArtifactInfo,
    BlobInfo,
    DetectedVulnerability,
    ScanOptions,
)


class ServerError(Exception):
    """Raised when a server request cannot be handled."""


class Driver(Protocol):
    def scan(
        self,
        target: str,
        image_id: str,
        layer_ids: Sequence[str],
        options: ScanOptions,
    ) -> tuple[Results, OS | None, bool]: ...


class VulnerabilityClient(Protocol):
    def fill_info(self, vulns: list[DetectedVulnerability], result_type: str) -> None: ...


class ArtifactCache(Protocol):
    def put_artifact(self, artifact_id: str, artifact_info: ArtifactInfo) -> None: ...

    def put_blob(self, blob_id: str, blob_info: BlobInfo) -> None: ...

    def missing_blobs(
        self, artifact_id: str, blob_ids: Sequence[str]
    ) -> tuple[bool, list[str]]: ...


@dataclass
class ScanServer:
    """Scans on behalf of remote clients and fills in vulnerability details."""

    local_scanner: Driver
    result_client: VulnerabilityClient

    def scan(self, request: ScanRequest) -> ScanResponse:
        """Scan the requested artifact and return the response message."""
        rpc_options = request.options
        options = ScanOptions(
            vuln_type=list(rpc_options.vuln_type) if rpc_options else [],
            security_checks=list(rpc_options.security_checks) if rpc_options else [],
        )
        try:
            results, os_found, eosl = self.local_scanner.scan(
                request.target, request.artifact_id, request.blob_ids, options
            )
        except Exception as e:
            raise ServerError(f"failed scan, {request.target}: {e}") from e

        for result in results:
            self.result_client.fill_info(result.vulnerabilities, result.type)
        return to_rpc_scan_response(results, os_found, eosl)


@dataclass
class CacheServer:
    """Stores artifact and blob information sent by remote clients."""

    cache: ArtifactCache

    def put_artifact(self, request: PutArtifactRequest) -> None:
        """Store the artifact information of the request."""
        if request.artifact_info is None:
            raise ServerError("empty image info")
        image_info = from_rpc_put_artifact_request(request)
        try:
            self.cache.put_artifact(request.artifact_id, image_info)
        except Exception as e:
            raise ServerError(f"unable to store image info in cache: {e}") from e

    def put_blob(self, request: PutBlobRequest) -> None:
        """Store the blob information of the request."""
        if request.blob_info is None:
            raise ServerError("empty layer info")
        layer_info = from_rpc_put_blob_request(request)
        try:
            self.cache.put_blob(request.diff_id, layer_info)
        except Exception as e:
            raise ServerError(f"unable to store layer info in cache: {e}") from e

    def missing_blobs(self, request: MissingBlobsRequest) -> MissingBlobsResponse:
        """Report which of the requested artifact and blobs the cache lacks."""
        try:
            missing_artifact, blob_ids = self.cache.missing_blobs(
                request.artifact_id, request.blob_ids
            )
        except Exception as e:
            raise ServerError(f"failed to get missing blobs: {e}") from e
        return MissingBlobsResponse(
            missing_artifact=missing_artifact, missing_blob_ids=list(blob_ids)
        )