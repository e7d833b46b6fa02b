"""Tabular report output."""

from __future__ import annotations

import re
import sys
from collections import Counter
from dataclasses import dataclass, field
from typing import Sequence, TextIO

from vulnscan.results import Result, Results
from vulnscan.types import SEVERITY_NAMES, DetectedVulnerability, Severity

JAR = "jar"
_MAX_CELL_WIDTH = 30
_TITLE_WORDS = 12
_ANSI = re.compile(r"\x1b\[[0-9;]*m")
_NUMERIC = re.compile(r"^-?\d+\.?\d*$")
_SEVERITY_COLORS = {
    "UNKNOWN": "36",
    "LOW": "34",
    "MEDIUM": "33",
    "HIGH": "91",
    "CRITICAL": "31",
}


def _colorize(severity: str) -> str:
    code = _SEVERITY_COLORS.get(severity)
    if code is None:
        return severity
    return f"\x1b[{code}m{severity}\x1b[0m"


def _width(text: str) -> int:
    return len(_ANSI.sub("", text))


def _wrap(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.split("\n"):
        if _width(raw) <= _MAX_CELL_WIDTH:
            lines.append(raw)
            continue
        words = raw.split()
        current = words[0]
        for word in words[1:]:
            if _width(current) + 1 + _width(word) <= _MAX_CELL_WIDTH:
                current += " " + word
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


def _pad(text: str, width: int, align: str) -> str:
    gap = width - _width(text)
    if align == "center":
        left = gap // 2
        return " " * left + text + " " * (gap - left)
    if align == "right":
        return " " * gap + text
    return text + " " * gap


def _line(widths: Sequence[int], merged: Sequence[bool] | None = None) -> str:
    merged = merged or [False] * len(widths)
    parts = ((" " if m else "-") * (w + 2) for w, m in zip(widths, merged))
    return "+" + "+".join(parts) + "+\n"


def render_table(header: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Render rows as a bordered table with row lines and merged repeated cells."""
    header = [h.upper() for h in header]
    widths = [_width(h) for h in header]
    for row in rows:
        for col, cell in enumerate(row):
            widths[col] = max([widths[col], *(_width(line) for line in _wrap(cell))])

    out = [_line(widths)]
    out.append(
        "|" + "|".join(f" {_pad(h, w, 'center')} " for h, w in zip(header, widths)) + "|\n"
    )
    out.append(_line(widths))

    previous: Sequence[str] | None = None
    for row in rows:
        merged = [
            previous is not None and cell != "" and cell == previous[col]
            for col, cell in enumerate(row)
        ]
        if previous is not None:
            out.append(_line(widths, merged))
        cells = [[""] if m else _wrap(cell) for cell, m in zip(row, merged)]
        height = max(len(c) for c in cells)
        for index in range(height):
            parts = []
            for cell_lines, w in zip(cells, widths):
                text = cell_lines[index] if index < len(cell_lines) else ""
                align = "right" if _NUMERIC.match(_ANSI.sub("", text)) else "left"
                parts.append(f" {_pad(text, w, align)} ")
            out.append("|" + "|".join(parts) + "|\n")
        previous = row
    out.append(_line(widths))
    return "".join(out)


@dataclass
class TableWriter:
    """Writes results as tables; the per-target summary goes to standard output."""

    output: TextIO
    severities: list[Severity] = field(default_factory=list)
    light: bool = False

    def write(self, results: Results) -> None:
        for result in results:
            if result.type == JAR and not result.vulnerabilities:
                continue
            self._write_one(result)

    def _write_one(self, result: Result) -> None:
        vulns = result.vulnerabilities
        counts = Counter(v.severity for v in vulns)
        wanted = {str(s) for s in self.severities or []}
        summary = ", ".join(
            f"{name}: {counts[name]}" for name in SEVERITY_NAMES if name in wanted
        )
        sys.stdout.write(f"\n{result.target}\n{'=' * len(result.target)}\n")
        sys.stdout.write(f"Total: {len(vulns)} ({summary})\n\n")
        if not vulns:
            return

        header = ["Library", "Vulnerability ID", "Severity", "Installed Version", "Fixed Version"]
        if not self.light:
            header.append("Title")
        self.output.write(render_table(header, [self._row(v) for v in vulns]))

    def _row(self, v: DetectedVulnerability) -> list[str]:
        severity = _colorize(v.severity) if self.output is sys.stdout else v.severity
        row = [v.pkg_name, v.vulnerability_id, severity, v.installed_version, v.fixed_version]
        if not self.light:
            title = v.title or v.description
            words = title.split(" ")
            if len(words) >= _TITLE_WORDS:
                title = " ".join(words[:_TITLE_WORDS]) + "..."
            if v.primary_url:
                url = v.primary_url.replace("https://", "").replace("http://", "")
                title = f"{title} -->{url}"
            row.append(title.strip())
        return row