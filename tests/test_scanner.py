import logging

import pytest

from vulnscan.results import Result, Results
from vulnscan.scanner import ScanError, Scanner
from vulnscan.types import OS, ArtifactReference, DetectedVulnerability, Layer, ScanOptions

IMAGE_ID = "sha256:e7d92cdc71feacf90708cb59182d0df1b911f8ae022d29e8e95d75ca6a99776a"
LAYER_ID = "sha256:5216338b40a7b96416b8b9858974bbe4acc3096ee60acbc4dfb1ee02aecceb10"
DIFF_ID = "sha256:b2a1a2d80bf0c747a4f6b0ca6af5eef23f043fcdb1ed4f3a3e750aef2dc68079"


class FakeArtifact:
    def __init__(self, reference=None, error=None):
        self.reference = reference
        self.error = error

    def inspect(self):
        if self.error is not None:
            raise self.error
        return self.reference


class FakeDriver:
    def __init__(self, returns=None, error=None):
        self.returns = returns
        self.error = error
        self.calls = []

    def scan(self, target, image_id, layer_ids, options):
        self.calls.append((target, image_id, list(layer_ids), options))
        if self.error is not None:
            raise self.error
        return self.returns


def _reference():
    return ArtifactReference(name="alpine:3.11", id=IMAGE_ID, blob_ids=[LAYER_ID])


def _results():
    return Results(
        [
            Result(
                target="alpine:3.11",
                vulnerabilities=[
                    DetectedVulnerability(
                        vulnerability_id="CVE-2019-9999",
                        pkg_name="vim",
                        installed_version="1.2.3",
                        fixed_version="1.2.4",
                        layer=Layer(digest=LAYER_ID, diff_id=DIFF_ID),
                    )
                ],
            ),
            Result(
                target="node-app/package-lock.json",
                vulnerabilities=[
                    DetectedVulnerability(
                        vulnerability_id="CVE-2019-11358",
                        pkg_name="jquery",
                        installed_version="3.3.9",
                        fixed_version=">=3.4.0",
                    )
                ],
                type="npm",
            ),
        ]
    )


def test_scan_artifact_happy_path(caplog):
    options = ScanOptions(vuln_type=["os"])
    driver = FakeDriver(returns=(_results(), OS("alpine", "3.10"), True))
    scanner = Scanner(driver, FakeArtifact(_reference()))
    with caplog.at_level(logging.WARNING):
        results = scanner.scan_artifact(options)
    assert results == _results()
    assert driver.calls == [("alpine:3.11", IMAGE_ID, [LAYER_ID], options)]
    assert "no longer supported by the distribution: alpine 3.10" in caplog.text


def test_scan_artifact_inspect_error():
    driver = FakeDriver()
    scanner = Scanner(driver, FakeArtifact(error=RuntimeError("error")))
    with pytest.raises(ScanError, match="failed analysis"):
        scanner.scan_artifact(ScanOptions(vuln_type=["os"]))
    assert driver.calls == []


def test_scan_artifact_driver_error():
    scanner = Scanner(FakeDriver(error=RuntimeError("error")), FakeArtifact(_reference()))
    with pytest.raises(ScanError, match="scan failed"):
        scanner.scan_artifact(ScanOptions(vuln_type=["os"]))


def test_scan_artifact_no_eosl_warning(caplog):
    driver = FakeDriver(returns=(Results(), OS("alpine", "3.11"), False))
    scanner = Scanner(driver, FakeArtifact(_reference()))
    with caplog.at_level(logging.WARNING):
        results = scanner.scan_artifact(ScanOptions())
    assert results == []
    assert "no longer supported" not in caplog.text