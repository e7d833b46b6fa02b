"""Scanning artifacts against the local vulnerability database."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Protocol, Sequence

from vulnscan.results import Result, Results
from vulnscan.types import (
    OS,
    SECURITY_CHECK_VULNERABILITY,
    VULN_TYPE_LIBRARY,
    VULN_TYPE_OS,
    Application,
    ArtifactDetail,
    DetectedVulnerability,
    LibraryInfo,
    Package,
    ScanOptions,
)

logger = logging.getLogger(__name__)


class _LayersIncomplete(Exception):
    """Layers were applied, but something is missing; ``detail`` is still usable."""

    message = ""

    def __init__(self, detail: ArtifactDetail | None = None) -> None:
        super().__init__(self.message)
        self.detail = detail if detail is not None else ArtifactDetail()


class UnknownOSError(_LayersIncomplete):
    """The OS of the artifact could not be identified."""

    message = "unknown OS"


class NoPackagesDetectedError(_LayersIncomplete):
    """The OS was identified but no installed packages were found."""

    message = "no packages detected"


class UnsupportedOSError(Exception):
    """The OS detector does not support this OS."""

    def __init__(self, message: str = "unsupported os") -> None:
        super().__init__(message)


class LocalScanError(Exception):
    """Raised when a local scan fails."""


class Applier(Protocol):
    def apply_layers(self, artifact_id: str, blob_ids: Sequence[str]) -> ArtifactDetail: ...


class OspkgDetector(Protocol):
    def detect(
        self,
        image_name: str,
        os_family: str,
        os_name: str,
        created: datetime | None,
        pkgs: list[Package],
    ) -> tuple[list[DetectedVulnerability], bool]: ...


LibraryDetector = Callable[[str, Sequence[LibraryInfo]], list[DetectedVulnerability]]


def _wrap(message: str, err: Exception) -> LocalScanError:
    return LocalScanError(f"{message}: {err}")


def skipped(file_path: str, skip_files: Iterable[str] | None, skip_dirs: Iterable[str] | None) -> bool:
    """Return True if ``file_path`` is one of ``skip_files`` or lies under one of ``skip_dirs``."""

    def clean(path: str) -> str:
        return os.path.normpath(path).lstrip(os.sep)

    file_path = clean(file_path)
    if any(clean(f) == file_path for f in skip_files or ()):
        return True
    for skip_dir in skip_dirs or ():
        try:
            rel = os.path.relpath(file_path, clean(skip_dir))
        except ValueError as e:
            logger.warning("Unexpected error while skipping directories: %s", e)
            return False
        if not rel.startswith(".."):
            return True
    return False


def merge_pkgs(pkgs: Sequence[Package], pkgs_from_commands: Iterable[Package]) -> list[Package]:
    """Append packages from commands whose names are not already in ``pkgs``."""
    known = {p.name for p in pkgs}
    merged = list(pkgs)
    merged.extend(p for p in pkgs_from_commands if p.name not in known)
    return merged


@dataclass
class LocalScanner:
    """Detects vulnerabilities in OS packages and application dependencies."""

    applier: Applier
    ospkg_detector: OspkgDetector
    library_detector: LibraryDetector = field(repr=False)

    def scan(
        self,
        target: str,
        artifact_id: str,
        blob_ids: Sequence[str],
        options: ScanOptions,
    ) -> tuple[Results, OS | None, bool]:
        """Return the results, the detected OS and whether the OS is end-of-life."""
        try:
            detail = self.applier.apply_layers(artifact_id, blob_ids)
        except UnknownOSError as e:
            logger.debug("OS is not detected and vulnerabilities in OS packages are not detected.")
            detail = e.detail
        except NoPackagesDetectedError as e:
            logger.warning(
                "No OS package is detected. Make sure you haven't deleted any files "
                "that contain information about the installed packages."
            )
            logger.warning('e.g. files under "/lib/apk/db/", "/var/lib/dpkg/" and "/var/lib/rpm"')
            detail = e.detail
        except Exception as e:
            raise _wrap("failed to apply layers", e) from e

        eosl = False
        results = Results()
        if SECURITY_CHECK_VULNERABILITY in options.security_checks:
            try:
                vuln_results, eosl = self._check_vulnerabilities(target, detail, options)
            except LocalScanError as e:
                raise _wrap("failed to detect vulnerabilities", e) from e
            results.extend(vuln_results)
        return results, detail.os, eosl

    def _check_vulnerabilities(
        self, target: str, detail: ArtifactDetail, options: ScanOptions
    ) -> tuple[list[Result], bool]:
        eosl = False
        results: list[Result] = []
        if VULN_TYPE_OS in options.vuln_type:
            try:
                result, eosl = self._scan_os_pkgs(target, detail, options)
            except LocalScanError as e:
                raise _wrap("unable to scan OS packages", e) from e
            if result is not None:
                results.append(result)
        if VULN_TYPE_LIBRARY in options.vuln_type:
            try:
                results.extend(self._scan_library(detail.applications, options))
            except LocalScanError as e:
                raise _wrap("failed to scan application libraries", e) from e
        return results, eosl

    def _scan_os_pkgs(
        self, target: str, detail: ArtifactDetail, options: ScanOptions
    ) -> tuple[Result | None, bool]:
        if detail.os is None:
            logger.info("Detected OS: unknown")
            return None, False
        logger.info("Detected OS: %s", detail.os.family)

        pkgs = list(detail.packages)
        if options.scan_removed_packages:
            pkgs = merge_pkgs(pkgs, detail.history_packages)

        try:
            result, eosl = self._detect_vulns_in_os_pkgs(
                target, detail.os.family, detail.os.name, pkgs
            )
        except LocalScanError as e:
            raise _wrap("failed to scan OS packages", e) from e
        if result is None:
            return None, eosl

        if options.list_all_packages:
            result.packages = sorted(pkgs, key=lambda p: p.name)
        return result, eosl

    def _detect_vulns_in_os_pkgs(
        self, target: str, os_family: str, os_name: str, pkgs: list[Package]
    ) -> tuple[Result | None, bool]:
        if not os_family:
            return None, False
        try:
            vulns, eosl = self.ospkg_detector.detect("", os_family, os_name, None, pkgs)
        except UnsupportedOSError:
            return None, False
        except Exception as e:
            raise _wrap("failed vulnerability detection of OS packages", e) from e
        result = Result(
            target=f"{target} ({os_family} {os_name})",
            vulnerabilities=list(vulns or []),
            type=os_family,
        )
        return result, eosl

    def _scan_library(self, apps: Sequence[Application], options: ScanOptions) -> list[Result]:
        logger.info("Number of PL dependency files: %d", len(apps))
        results: list[Result] = []
        printed_types: set[str] = set()
        for app in apps:
            if not app.libraries:
                continue
            if skipped(app.file_path, options.skip_files, options.skip_dirs):
                continue
            if app.type not in printed_types:
                logger.info("Detecting %s vulnerabilities...", app.type)
                printed_types.add(app.type)

            logger.debug(
                "Detecting library vulnerabilities, type: %s, path: %s", app.type, app.file_path
            )
            try:
                vulns = self.library_detector(app.type, app.libraries)
            except Exception as e:
                raise _wrap("failed vulnerability detection of libraries", e) from e

            report = Result(
                target=app.file_path,
                vulnerabilities=list(vulns or []),
                type=app.type,
            )
            if options.list_all_packages:
                report.packages = sorted(
                    (
                        Package(name=lib.library.name, version=lib.library.version, layer=lib.layer)
                        for lib in app.libraries
                    ),
                    key=lambda p: p.name,
                )
            results.append(report)
        results.sort(key=lambda r: r.target)
        return results