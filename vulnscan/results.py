"""Scan results and their JSON-shaped dictionary form."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from vulnscan.types import (
    CVSS,
    DetectedVulnerability,
    Layer,
    Package,
    Severity,
)


def _put(data: dict[str, Any], key: str, value: Any) -> None:
    if value:
        data[key] = value


def format_time(value: datetime) -> str:
    """Return an RFC 3339 string for ``value``; naive times count as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat()
    return text.replace("+00:00", "Z")


def parse_time(text: str) -> datetime:
    """Parse an RFC 3339 string as written by :func:`format_time`."""
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def _layer_to_dict(layer: Layer) -> dict[str, Any]:
    data: dict[str, Any] = {}
    _put(data, "Digest", layer.digest)
    _put(data, "DiffID", layer.diff_id)
    return data


def _layer_from_dict(data: dict[str, Any] | None) -> Layer:
    data = data or {}
    return Layer(digest=data.get("Digest", ""), diff_id=data.get("DiffID", ""))


def _package_to_dict(pkg: Package) -> dict[str, Any]:
    data: dict[str, Any] = {}
    _put(data, "Name", pkg.name)
    _put(data, "Version", pkg.version)
    _put(data, "Release", pkg.release)
    _put(data, "Epoch", pkg.epoch)
    _put(data, "Arch", pkg.arch)
    _put(data, "SrcName", pkg.src_name)
    _put(data, "SrcVersion", pkg.src_version)
    _put(data, "SrcRelease", pkg.src_release)
    _put(data, "SrcEpoch", pkg.src_epoch)
    data["Layer"] = _layer_to_dict(pkg.layer)
    return data


def _package_from_dict(data: dict[str, Any]) -> Package:
    return Package(
        name=data.get("Name", ""),
        version=data.get("Version", ""),
        release=data.get("Release", ""),
        epoch=data.get("Epoch", 0),
        arch=data.get("Arch", ""),
        src_name=data.get("SrcName", ""),
        src_version=data.get("SrcVersion", ""),
        src_release=data.get("SrcRelease", ""),
        src_epoch=data.get("SrcEpoch", 0),
        layer=_layer_from_dict(data.get("Layer")),
    )


def _cvss_to_dict(cvss: CVSS) -> dict[str, Any]:
    data: dict[str, Any] = {}
    _put(data, "V2Vector", cvss.v2_vector)
    _put(data, "V3Vector", cvss.v3_vector)
    _put(data, "V2Score", cvss.v2_score)
    _put(data, "V3Score", cvss.v3_score)
    return data


def _cvss_from_dict(data: dict[str, Any]) -> CVSS:
    return CVSS(
        v2_vector=data.get("V2Vector", ""),
        v3_vector=data.get("V3Vector", ""),
        v2_score=float(data.get("V2Score", 0.0)),
        v3_score=float(data.get("V3Score", 0.0)),
    )


def _vuln_to_dict(v: DetectedVulnerability) -> dict[str, Any]:
    data: dict[str, Any] = {}
    _put(data, "VulnerabilityID", v.vulnerability_id)
    _put(data, "PkgName", v.pkg_name)
    _put(data, "InstalledVersion", v.installed_version)
    _put(data, "FixedVersion", v.fixed_version)
    data["Layer"] = _layer_to_dict(v.layer)
    _put(data, "SeveritySource", v.severity_source)
    _put(data, "PrimaryURL", v.primary_url)
    _put(data, "Title", v.title)
    _put(data, "Description", v.description)
    _put(data, "Severity", v.severity)
    _put(data, "CweIDs", list(v.cwe_ids))
    _put(data, "VendorSeverity", {k: int(s) for k, s in v.vendor_severity.items()})
    _put(data, "CVSS", {k: _cvss_to_dict(c) for k, c in v.cvss.items()})
    _put(data, "References", list(v.references))
    if v.published_date is not None:
        data["PublishedDate"] = format_time(v.published_date)
    if v.last_modified_date is not None:
        data["LastModifiedDate"] = format_time(v.last_modified_date)
    return data


def _vuln_from_dict(data: dict[str, Any]) -> DetectedVulnerability:
    published = data.get("PublishedDate")
    modified = data.get("LastModifiedDate")
    return DetectedVulnerability(
        vulnerability_id=data.get("VulnerabilityID", ""),
        pkg_name=data.get("PkgName", ""),
        installed_version=data.get("InstalledVersion", ""),
        fixed_version=data.get("FixedVersion", ""),
        layer=_layer_from_dict(data.get("Layer")),
        severity_source=data.get("SeveritySource", ""),
        primary_url=data.get("PrimaryURL", ""),
        title=data.get("Title", ""),
        description=data.get("Description", ""),
        severity=data.get("Severity", ""),
        cwe_ids=list(data.get("CweIDs") or []),
        vendor_severity={
            k: Severity(s) for k, s in (data.get("VendorSeverity") or {}).items()
        },
        cvss={k: _cvss_from_dict(c) for k, c in (data.get("CVSS") or {}).items()},
        references=list(data.get("References") or []),
        published_date=parse_time(published) if published else None,
        last_modified_date=parse_time(modified) if modified else None,
    )


@dataclass
class Result:
    """The findings for one scan target."""

    target: str = ""
    type: str = ""
    packages: list[Package] = field(default_factory=list)
    vulnerabilities: list[DetectedVulnerability] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON report form, leaving out empty optional fields."""
        data: dict[str, Any] = {"Target": self.target}
        _put(data, "Type", self.type)
        _put(data, "Packages", [_package_to_dict(p) for p in self.packages])
        _put(data, "Vulnerabilities", [_vuln_to_dict(v) for v in self.vulnerabilities])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result:
        """Build a result from its JSON report form."""
        return cls(
            target=data.get("Target", ""),
            type=data.get("Type", ""),
            packages=[_package_from_dict(p) for p in data.get("Packages") or []],
            vulnerabilities=[
                _vuln_from_dict(v) for v in data.get("Vulnerabilities") or []
            ],
        )


class Results(list):
    """A list of :class:`Result`."""

    def __init__(self, items: Iterable[Result] = ()) -> None:
        super().__init__(items)

    def failed(self) -> bool:
        """Return True if any result holds a vulnerability."""
        return any(r.vulnerabilities for r in self)