from datetime import datetime, timezone

import pytest

from vulnscan.client import (
    RemoteScanner,
    RequestContext,
    RpcScanError,
    with_custom_headers,
)
from vulnscan.results import Result, Results
from vulnscan.rpcmodels import (
    RpcCVSS,
    RpcLayer,
    RpcOS,
    RpcResult,
    RpcScanOptions,
    RpcSeverity,
    RpcVulnerability,
    ScanRequest,
    ScanResponse,
    Timestamp,
    TwirpError,
    TwirpErrorCode,
)
from vulnscan.types import CVSS, OS, DetectedVulnerability, Layer, ScanOptions

IMAGE_ID = "sha256:e7d92cdc71feacf90708cb59182d0df1b911f8ae022d29e8e95d75ca6a99776a"
LAYER_ID = "sha256:5216338b40a7b96416b8b9858974bbe4acc3096ee60acbc4dfb1ee02aecceb10"


class FakeClient:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def scan(self, ctx, request):
        self.calls.append((ctx, request))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _response():
    return ScanResponse(
        os=RpcOS(family="alpine", name="3.11"),
        eosl=True,
        results=[
            RpcResult(
                target="alpine:3.11",
                vulnerabilities=[
                    RpcVulnerability(
                        vulnerability_id="CVE-2020-0001",
                        pkg_name="musl",
                        installed_version="1.2.3",
                        fixed_version="1.2.4",
                        title="DoS",
                        description="Denial os Service",
                        severity=RpcSeverity.CRITICAL,
                        references=["http://exammple.com"],
                        severity_source="nvd",
                        cvss={
                            "nvd": RpcCVSS(
                                v2_vector="AV:L/AC:L/Au:N/C:C/I:C/A:C",
                                v3_vector="CVSS:3.1/AV:L/AC:L/PR:L/UI:N/S:U/C:H/I:H/A:H",
                                v2_score=7.2,
                                v3_score=7.8,
                            ),
                            "redhat": RpcCVSS(
                                v2_vector="AV:H/AC:L/Au:N/C:C/I:C/A:C",
                                v3_vector="CVSS:3.1/AV:L/AC:L/PR:L/UI:N/S:U/C:H/I:H/A:H",
                                v2_score=4.2,
                                v3_score=2.8,
                            ),
                        },
                        cwe_ids=["CWE-78"],
                        layer=RpcLayer(diff_id=LAYER_ID),
                        last_modified_date=Timestamp(seconds=1577840460),
                        published_date=Timestamp(seconds=978310860),
                    )
                ],
            )
        ],
    )


def _expected_results():
    return Results(
        [
            Result(
                target="alpine:3.11",
                vulnerabilities=[
                    DetectedVulnerability(
                        vulnerability_id="CVE-2020-0001",
                        pkg_name="musl",
                        installed_version="1.2.3",
                        fixed_version="1.2.4",
                        title="DoS",
                        description="Denial os Service",
                        severity="CRITICAL",
                        references=["http://exammple.com"],
                        cvss={
                            "nvd": CVSS(
                                v2_vector="AV:L/AC:L/Au:N/C:C/I:C/A:C",
                                v3_vector="CVSS:3.1/AV:L/AC:L/PR:L/UI:N/S:U/C:H/I:H/A:H",
                                v2_score=7.2,
                                v3_score=7.8,
                            ),
                            "redhat": CVSS(
                                v2_vector="AV:H/AC:L/Au:N/C:C/I:C/A:C",
                                v3_vector="CVSS:3.1/AV:L/AC:L/PR:L/UI:N/S:U/C:H/I:H/A:H",
                                v2_score=4.2,
                                v3_score=2.8,
                            ),
                        },
                        cwe_ids=["CWE-78"],
                        last_modified_date=datetime(2020, 1, 1, 1, 1, tzinfo=timezone.utc),
                        published_date=datetime(2001, 1, 1, 1, 1, tzinfo=timezone.utc),
                        severity_source="nvd",
                        layer=Layer(diff_id=LAYER_ID),
                    )
                ],
            )
        ]
    )


def test_scan_happy_path():
    client = FakeClient([_response()])
    scanner = RemoteScanner({"Trivy-Token": ["foo"]}, client)
    results, os_found, eosl = scanner.scan(
        "alpine:3.11", IMAGE_ID, [LAYER_ID], ScanOptions(vuln_type=["os"])
    )
    assert results == _expected_results()
    assert os_found == OS(family="alpine", name="3.11")
    assert eosl is True


def test_scan_sends_request_and_headers():
    client = FakeClient([_response()])
    scanner = RemoteScanner({"Trivy-Token": ["foo"]}, client)
    scanner.scan("alpine:3.11", IMAGE_ID, [LAYER_ID], ScanOptions(vuln_type=["os"]))
    ctx, request = client.calls[0]
    assert ctx.headers == {"Trivy-Token": ["foo"]}
    assert request == ScanRequest(
        target="alpine:3.11",
        artifact_id=IMAGE_ID,
        blob_ids=[LAYER_ID],
        options=RpcScanOptions(vuln_type=["os"]),
    )


def test_scan_error():
    client = FakeClient([RuntimeError("error")])
    scanner = RemoteScanner({"Trivy-Token": ["foo"]}, client)
    with pytest.raises(RpcScanError, match="failed to detect vulnerabilities via RPC"):
        scanner.scan("alpine:3.11", IMAGE_ID, [LAYER_ID], ScanOptions(vuln_type=["os"]))
    assert len(client.calls) == 1


def test_scan_retries_when_unavailable():
    delays = []
    client = FakeClient([TwirpError(TwirpErrorCode.UNAVAILABLE, "down"), _response()])
    scanner = RemoteScanner({}, client, sleep=delays.append)
    results, _, _ = scanner.scan("alpine:3.11", IMAGE_ID, [LAYER_ID], ScanOptions())
    assert len(client.calls) == 2
    assert len(delays) == 1
    assert results == _expected_results()


def test_scan_does_not_retry_other_rpc_errors():
    client = FakeClient([TwirpError(TwirpErrorCode.INTERNAL, "boom")])
    scanner = RemoteScanner({}, client, sleep=lambda _: None)
    with pytest.raises(RpcScanError, match="boom"):
        scanner.scan("alpine:3.11", IMAGE_ID, [LAYER_ID], ScanOptions())
    assert len(client.calls) == 1


@pytest.mark.parametrize(
    "headers, want",
    [
        ({"Trivy-Token": ["token"]}, {"Trivy-Token": ["token"]}),
        ({"Content-Type": ["token"]}, None),
    ],
)
def test_with_custom_headers(headers, want):
    ctx = with_custom_headers(RequestContext(), headers)
    assert ctx.headers == want


def test_with_custom_headers_copies():
    headers = {"Trivy-Token": ["token"]}
    ctx = with_custom_headers(RequestContext(), headers)
    headers["Trivy-Token"].append("other")
    assert ctx.headers == {"Trivy-Token": ["token"]}