"""Core data types shared by scanners, reports and the RPC layer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Iterable

VULN_TYPE_UNKNOWN = "unknown"
VULN_TYPE_OS = "os"
VULN_TYPE_LIBRARY = "library"

SECURITY_CHECK_UNKNOWN = "unknown"
SECURITY_CHECK_VULNERABILITY = "vuln"

VULN_TYPES = (VULN_TYPE_OS, VULN_TYPE_LIBRARY)
SECURITY_CHECKS = (SECURITY_CHECK_VULNERABILITY,)

BLOB_JSON_SCHEMA_VERSION = 1

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class Severity(IntEnum):
    """Vulnerability severity, ordered from least to most severe."""

    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    def __str__(self) -> str:
        return self.name


SEVERITY_NAMES = tuple(s.name for s in Severity)


def parse_severity(name: str) -> Severity:
    """Return the severity with the given upper-case name."""
    try:
        return Severity[name]
    except KeyError:
        raise ValueError(f"unknown severity: {name}") from None


def _severity_or_unknown(name: str) -> Severity:
    try:
        return parse_severity(name)
    except ValueError:
        return Severity.UNKNOWN


def compare_severity_string(a: str, b: str) -> int:
    """Return a positive number when ``b`` is more severe than ``a``.

    Unrecognised names count as UNKNOWN.
    """
    return int(_severity_or_unknown(b)) - int(_severity_or_unknown(a))


@dataclass
class Layer:
    digest: str = ""
    diff_id: str = ""


@dataclass
class OS:
    family: str = ""
    name: str = ""


@dataclass
class Package:
    name: str = ""
    version: str = ""
    release: str = ""
    epoch: int = 0
    arch: str = ""
    src_name: str = ""
    src_version: str = ""
    src_release: str = ""
    src_epoch: int = 0
    layer: Layer = field(default_factory=Layer)


@dataclass
class Library:
    name: str = ""
    version: str = ""


@dataclass
class LibraryInfo:
    library: Library = field(default_factory=Library)
    layer: Layer = field(default_factory=Layer)


@dataclass
class Application:
    type: str = ""
    file_path: str = ""
    libraries: list[LibraryInfo] = field(default_factory=list)


@dataclass
class PackageInfo:
    file_path: str = ""
    packages: list[Package] = field(default_factory=list)


@dataclass
class ArtifactInfo:
    schema_version: int = 0
    architecture: str = ""
    created: datetime | None = None
    docker_version: str = ""
    os: str = ""
    history_packages: list[Package] = field(default_factory=list)


@dataclass
class BlobInfo:
    schema_version: int = 0
    digest: str = ""
    diff_id: str = ""
    os: OS | None = None
    package_infos: list[PackageInfo] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)
    opaque_dirs: list[str] = field(default_factory=list)
    whiteout_files: list[str] = field(default_factory=list)


@dataclass
class ArtifactDetail:
    os: OS | None = None
    packages: list[Package] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)
    history_packages: list[Package] = field(default_factory=list)


@dataclass
class ArtifactReference:
    name: str = ""
    id: str = ""
    blob_ids: list[str] = field(default_factory=list)


@dataclass
class CVSS:
    v2_vector: str = ""
    v3_vector: str = ""
    v2_score: float = 0.0
    v3_score: float = 0.0


@dataclass
class DetectedVulnerability:
    """A vulnerability found in one installed package."""

    vulnerability_id: str = ""
    pkg_name: str = ""
    installed_version: str = ""
    fixed_version: str = ""
    layer: Layer = field(default_factory=Layer)
    severity_source: str = ""
    primary_url: str = ""
    title: str = ""
    description: str = ""
    severity: str = ""
    cwe_ids: list[str] = field(default_factory=list)
    vendor_severity: dict[str, Severity] = field(default_factory=dict)
    cvss: dict[str, CVSS] = field(default_factory=dict)
    references: list[str] = field(default_factory=list)
    published_date: datetime | None = None
    last_modified_date: datetime | None = None


def sort_by_severity(vulns: Iterable[DetectedVulnerability]) -> list[DetectedVulnerability]:
    """Sort by package name, installed version, severity (highest first) and ID."""
    return sorted(
        vulns,
        key=lambda v: (
            v.pkg_name,
            v.installed_version,
            -int(_severity_or_unknown(v.severity)),
            v.vulnerability_id,
        ),
    )


@dataclass
class ScanOptions:
    vuln_type: list[str] = field(default_factory=list)
    security_checks: list[str] = field(default_factory=list)
    scan_removed_packages: bool = False
    list_all_packages: bool = False
    skip_files: list[str] = field(default_factory=list)
    skip_dirs: list[str] = field(default_factory=list)


def new_vuln_type(s: str) -> str:
    """Return ``s`` if it is a known vulnerability type, else ``"unknown"``."""
    return s if s in VULN_TYPES else VULN_TYPE_UNKNOWN


def new_security_check(s: str) -> str:
    """Return ``s`` if it is a known security check, else ``"unknown"``."""
    return s if s in SECURITY_CHECKS else SECURITY_CHECK_UNKNOWN


@dataclass
class DockerOption:
    user_name: str = ""
    password: str = ""
    registry_token: str = ""
    timeout: timedelta = field(default_factory=timedelta)
    insecure_skip_tls_verify: bool = False
    non_ssl: bool = False


def _env_bool(key: str) -> bool:
    value = os.environ.get(key, "")
    if value == "":
        return False
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(
        f'unable to parse environment variables: invalid boolean for {key}: "{value}"'
    )


def get_docker_option(timeout: timedelta) -> DockerOption:
    """Build registry options from the TRIVY_* environment variables."""
    return DockerOption(
        user_name=os.environ.get("TRIVY_USERNAME", ""),
        password=os.environ.get("TRIVY_PASSWORD", ""),
        registry_token=os.environ.get("TRIVY_REGISTRY_TOKEN", ""),
        timeout=timeout,
        insecure_skip_tls_verify=_env_bool("TRIVY_INSECURE"),
        non_ssl=_env_bool("TRIVY_NON_SSL"),
    )