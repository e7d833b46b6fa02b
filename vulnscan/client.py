"""Client side of remote scanning."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Mapping, Protocol, Sequence

from vulnscan.convert import from_rpc_os, from_rpc_results
from vulnscan.results import Results
from vulnscan.retry import retry
from vulnscan.rpcmodels import RpcScanOptions, ScanRequest, ScanResponse
from vulnscan.types import OS, ScanOptions

logger = logging.getLogger(__name__)

_RESERVED_HEADERS = frozenset({"Accept", "Content-Type", "Twirp-Version"})


class RpcScanError(Exception):
    """Raised when a remote scan fails."""


@dataclass(frozen=True)
class RequestContext:
    """Per-request values passed to the RPC client, such as extra HTTP headers."""

    headers: dict[str, list[str]] | None = None


def with_custom_headers(
    ctx: RequestContext, custom_headers: Mapping[str, Sequence[str]] | None
) -> RequestContext:
    """Return a context carrying ``custom_headers``.

    Headers the protocol sets itself cannot be overridden; when one is given
    a warning is logged and ``ctx`` is returned unchanged.
    """
    headers = {key: list(values) for key, values in (custom_headers or {}).items()}
    for key in headers:
        if key in _RESERVED_HEADERS:
            logger.warning(
                "twirp error setting headers: provided header cannot set %s", key
            )
            return ctx
    return replace(ctx, headers=headers)


class ScanClient(Protocol):
    def scan(self, ctx: RequestContext, request: ScanRequest) -> ScanResponse: ...


@dataclass
class RemoteScanner:
    """Scans through a remote server, retrying while it is unavailable."""

    custom_headers: dict[str, list[str]]
    client: ScanClient
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def scan(
        self,
        target: str,
        image_id: str,
        layer_ids: Sequence[str],
        options: ScanOptions,
    ) -> tuple[Results, OS | None, bool]:
        """Return the results, the detected OS and whether the OS is end-of-life."""
        ctx = with_custom_headers(RequestContext(), self.custom_headers)
        request = ScanRequest(
            target=target,
            artifact_id=image_id,
            blob_ids=list(layer_ids),
            options=RpcScanOptions(
                vuln_type=list(options.vuln_type),
                security_checks=list(options.security_checks),
            ),
        )
        try:
            response = retry(lambda: self.client.scan(ctx, request), sleep=self.sleep)
        except Exception as e:
            raise RpcScanError(f"failed to detect vulnerabilities via RPC: {e}") from e
        return from_rpc_results(response.results), from_rpc_os(response.os), response.eosl