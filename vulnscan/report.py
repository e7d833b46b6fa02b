"""Writing scan results in the supported output formats."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Sequence, TextIO

from vulnscan.results import Result, Results
from vulnscan.table import TableWriter
from vulnscan.template import new_template_writer
from vulnscan.types import Severity


class ReportError(Exception):
    """Raised when results cannot be written."""


@dataclass
class JSONWriter:
    """Writes results as indented JSON."""

    output: TextIO

    def write(self, results: Results) -> None:
        self.output.write(json.dumps([r.to_dict() for r in results], indent=2))


def results_from_json(text: str) -> Results:
    """Parse results written by :class:`JSONWriter`."""
    return Results(Result.from_dict(item) for item in json.loads(text) or [])


def write_results(
    format: str,
    output: TextIO,
    severities: Sequence[Severity] | None,
    results: Results,
    output_template: str,
    light: bool,
) -> None:
    """Write results to ``output`` as ``table``, ``json`` or ``template``."""
    if format == "table":
        writer = TableWriter(output=output, severities=list(severities or []), light=light)
    elif format == "json":
        writer = JSONWriter(output=output)
    elif format == "template":
        try:
            writer = new_template_writer(output, output_template)
        except Exception as e:
            raise ReportError(f"failed to initialize template writer: {e}") from e
    else:
        raise ReportError(f"unknown format: {format}")

    try:
        writer.write(Results(results or []))
    except Exception as e:
        raise ReportError(f"failed to write results: {e}") from e