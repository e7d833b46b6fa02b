import io

import pytest

from vulnscan.report import JSONWriter, ReportError, results_from_json, write_results
from vulnscan.results import Result, Results
from vulnscan.types import DetectedVulnerability


def _vuln():
    return DetectedVulnerability(
        vulnerability_id="CVE-2020-0001",
        pkg_name="foo",
        installed_version="1.2.3",
        fixed_version="3.4.5",
        primary_url="https://avd.aquasec.com/nvd/cve-2020-0001",
        title="foobar",
        description="baz",
        severity="HIGH",
    )


def test_json_happy_path():
    out = io.StringIO()
    write_results("json", out, None, Results([Result(target="foojson", vulnerabilities=[_vuln()])]), "", False)
    assert results_from_json(out.getvalue()) == Results(
        [Result(target="foojson", vulnerabilities=[_vuln()])]
    )


def test_json_writer_indents():
    out = io.StringIO()
    JSONWriter(out).write(Results([Result(target="t")]))
    assert out.getvalue() == '[\n  {\n    "Target": "t"\n  }\n]'


def test_unknown_format():
    with pytest.raises(ReportError, match="unknown format: xml"):
        write_results("xml", io.StringIO(), None, Results(), "", False)


def test_bad_template():
    with pytest.raises(ReportError, match="failed to initialize template writer"):
        write_results("template", io.StringIO(), None, Results(), "{% for %}", False)


def test_template_format():
    out = io.StringIO()
    write_results("template", out, None, Results([Result(target="x")]),
                  "{% for r in results %}{{ r.Target }}{% endfor %}", False)
    assert out.getvalue() == "x"


def test_table_format():
    out = io.StringIO()
    write_results("table", out, None, Results([Result(target="t", vulnerabilities=[_vuln()])]), "", True)
    assert "| foo     | CVE-2020-0001    | HIGH     |" in out.getvalue()