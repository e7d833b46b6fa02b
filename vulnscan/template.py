"""Report output through user-supplied Jinja templates."""

from __future__ import annotations

import html
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TextIO

import jinja2

from vulnscan.results import Result, Results, format_time
from vulnscan.types import DetectedVulnerability

_PATH_RE = re.compile(r"(?P<path>.+?)(?:\s*\((?:.*?)\).*?)?$")

_OS_TYPES = frozenset({
    "ubuntu", "alpine", "redhat", "redhat-oval", "debian", "debian-oval",
    "fedora", "amazon", "oracle-oval", "suse-cvrf", "opensuse-cvrf",
    "photon", "centos",
})
_LANGUAGE_TYPES = frozenset({
    "npm", "yarn", "nuget", "pipenv", "poetry", "bundler", "cargo", "composer",
})

_XML_ESCAPES = {
    '"': "&#34;", "'": "&#39;", "&": "&amp;", "<": "&lt;", ">": "&gt;",
    "\t": "&#x9;", "\n": "&#xA;", "\r": "&#xD;",
}


def now() -> int:
    """Return the current time as nanoseconds since the epoch."""
    return time.time_ns()


def _rfc3339_nano(ns: int) -> str:
    seconds, frac = divmod(ns, 1_000_000_000)
    text = datetime.fromtimestamp(seconds, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    if frac:
        text += "." + f"{frac:09d}".rstrip("0")
    return text + "Z"


def _title(text: str) -> str:
    out = []
    prev_sep = True
    for ch in text:
        out.append(ch.upper() if prev_sep and ch.isalpha() else ch)
        prev_sep = not (ch.isalnum() or ch == "_")
    return "".join(out)


def to_sarif_rule_name(vulnerability_type: str) -> str:
    """Return the SARIF rule name for a result type."""
    if vulnerability_type in _OS_TYPES:
        rule = "OS Package Vulnerability"
    elif vulnerability_type in _LANGUAGE_TYPES:
        rule = "Programming Language Vulnerability"
    else:
        rule = "Other Vulnerability"
    return f"{rule} ({_title(vulnerability_type)})"


def to_sarif_error_level(severity: str) -> str:
    """Map a severity name to a SARIF level."""
    if severity in ("CRITICAL", "HIGH"):
        return "error"
    if severity == "MEDIUM":
        return "warning"
    if severity in ("LOW", "UNKNOWN"):
        return "note"
    return "none"


def escape_xml(text: str) -> str:
    """Escape text for use in XML content or attributes."""
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in text)


def end_with_period(text: str) -> str:
    """Append a period unless the text already ends with one."""
    return text if text.endswith(".") else text + "."


def to_path_uri(text: str) -> str:
    """Strip a trailing ``(distro version)`` part and use forward slashes."""
    match = _PATH_RE.search(text)
    if match:
        text = match.group("path")
    return text.replace("\\", "/")


def _time_view(value: datetime | None) -> str | None:
    return format_time(value) if value is not None else None


def _vuln_view(v: DetectedVulnerability) -> dict[str, Any]:
    inner = {
        "Title": v.title,
        "Description": v.description,
        "Severity": v.severity,
        "CweIDs": list(v.cwe_ids),
        "VendorSeverity": {k: int(s) for k, s in v.vendor_severity.items()},
        "CVSS": {
            k: {"V2Vector": c.v2_vector, "V3Vector": c.v3_vector,
                "V2Score": c.v2_score, "V3Score": c.v3_score}
            for k, c in v.cvss.items()
        },
        "References": list(v.references),
        "PublishedDate": _time_view(v.published_date),
        "LastModifiedDate": _time_view(v.last_modified_date),
    }
    view = {
        "VulnerabilityID": v.vulnerability_id,
        "PkgName": v.pkg_name,
        "InstalledVersion": v.installed_version,
        "FixedVersion": v.fixed_version,
        "Layer": {"Digest": v.layer.digest, "DiffID": v.layer.diff_id},
        "SeveritySource": v.severity_source,
        "PrimaryURL": v.primary_url,
        "Vulnerability": dict(inner),
    }
    view.update(inner)
    return view


def _result_view(r: Result) -> dict[str, Any]:
    return {
        "Target": r.target,
        "Type": r.type,
        "Packages": [
            {"Name": p.name, "Version": p.version, "Release": p.release,
             "Epoch": p.epoch, "Arch": p.arch, "SrcName": p.src_name,
             "SrcVersion": p.src_version, "SrcRelease": p.src_release,
             "SrcEpoch": p.src_epoch,
             "Layer": {"Digest": p.layer.digest, "DiffID": p.layer.diff_id}}
            for p in r.packages
        ],
        "Vulnerabilities": [_vuln_view(v) for v in r.vulnerabilities],
    }


_FUNCTIONS = {
    "escapeXML": escape_xml,
    "toSarifErrorLevel": to_sarif_error_level,
    "toSarifRuleName": to_sarif_rule_name,
    "endWithPeriod": end_with_period,
    "toLower": str.lower,
    "escapeString": html.escape,
    "toPathUri": to_path_uri,
    "getEnv": lambda key: os.environ.get(key, ""),
    "getCurrentTime": lambda: _rfc3339_nano(now()),
}


@dataclass
class TemplateWriter:
    """Renders results with a template; the results are bound to ``results``."""

    output: TextIO
    template: jinja2.Template

    def write(self, results: Results) -> None:
        self.output.write(self.template.render(results=[_result_view(r) for r in results]))


def new_template_writer(output: TextIO, output_template: str) -> TemplateWriter:
    """Compile a template; a leading ``@`` names a file holding it."""
    if output_template.startswith("@"):
        with open(output_template[1:], encoding="utf-8") as f:
            output_template = f.read()
    env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)
    env.globals.update(_FUNCTIONS)
    env.filters.update(_FUNCTIONS)
    return TemplateWriter(output=output, template=env.from_string(output_template))