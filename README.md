# vulnscan

`vulnscan` is a library for working with vulnerability scan results. It has these parts:

- **Data types** (`vulnscan.types`). These are dataclasses for packages, libraries, OS information, artifact and blob information, CVSS scores, detected vulnerabilities and scan options. The module also defines the `Severity` enum. Helpers include `parse_severity`, `compare_severity_string`, `sort_by_severity`, `new_vuln_type` and `new_security_check`.
- **Results** (`vulnscan.results`). `Result` holds the findings for one target. `Results` is a list of them, and `Results.failed()` is true when any result holds a vulnerability. `Result.to_dict()` and `Result.from_dict()` convert to and from the JSON report form.
- **Local scanning** (`vulnscan.local_scanner.LocalScanner`). It turns an artifact's detail into per-target results for OS packages and application dependencies. It can also:
  - skip files and directories (`skipped`);
  - list all packages;
  - merge in packages recovered from image history (`merge_pkgs`).
- **Scanning an artifact** (`vulnscan.scanner.Scanner`). It inspects an artifact and passes it to a driver, such as a `LocalScanner` or a `RemoteScanner`. It raises `ScanError` when the scan fails.
- **Remote scanning** (`vulnscan.client.RemoteScanner`). It sends a `ScanRequest` through a client object that you supply. It attaches custom headers with `with_custom_headers`. It retries with `vulnscan.retry.retry` while the server answers with an `unavailable` `TwirpError`.
- **Request handlers** (`vulnscan.server.ScanServer`, `vulnscan.server.CacheServer`). They handle scan, put-artifact, put-blob and missing-blobs requests.
- **Conversions** (`vulnscan.convert`). These move values between the data types and the message models in `vulnscan.rpcmodels`.
- **Reports** (`vulnscan.report.write_results`). The output formats are `table`, `json` and `template`.

## Installation

```
pip install vulnscan
```

## Writing a report

```python
import sys

from vulnscan.report import write_results
from vulnscan.results import Result, Results
from vulnscan.types import DetectedVulnerability, Severity

results = Results([
    Result(
        target="alpine:3.11 (alpine 3.11)",
        type="alpine",
        vulnerabilities=[
            DetectedVulnerability(
                vulnerability_id="CVE-2020-0001",
                pkg_name="musl",
                installed_version="1.2.3",
                fixed_version="1.2.4",
                severity="HIGH",
                title="DoS",
            )
        ],
    )
])

write_results("table", sys.stdout, [Severity.HIGH, Severity.CRITICAL], results, "", False)

if results.failed():
    sys.exit(1)
```

### Output formats

`write_results` raises `vulnscan.report.ReportError` for an unknown format, or when writing fails.

- **`table`**
  - For each target, it prints the target name and a `Total: N (...)` summary to standard output. The summary counts the chosen severities.
  - It writes a bordered table to the given output. The table has columns for library, vulnerability ID, severity, installed version, fixed version and title. When `light` is true, the title column is left out.
  - Titles longer than twelve words are cut short, and the primary URL is added to the title.
  - Severities are coloured only when the output is `sys.stdout`.
  - A `jar` target with no vulnerabilities is skipped.
- **`json`**
  - It writes the results as indented JSON and leaves out empty fields.
  - `vulnscan.report.results_from_json` reads that JSON back into `Results`.
- **`template`**
  - It renders a Jinja2 template. Pass the template as text, or as `@path/to/file` to read it from a file.
  - The results are bound to the variable `results`. Field names follow the JSON form, for example `Target`, `Vulnerabilities`, `VulnerabilityID` and `Severity`.
  - These helpers are available both as functions and as filters:
    - `escapeXML`
    - `escapeString`
    - `endWithPeriod`
    - `toLower`
    - `toPathUri`
    - `toSarifRuleName`
    - `toSarifErrorLevel`
    - `getEnv`
    - `getCurrentTime`
  - The matching Python functions live in `vulnscan.template`: `escape_xml`, `end_with_period`, `to_path_uri`, `to_sarif_rule_name`, `to_sarif_error_level` and `now`.

## Utilities

- `vulnscan.versions.format_version(pkg)` and `format_src_version(pkg)` format versions as `[epoch:]version[-release]`.
- `vulnscan.utils.filter_targets` selects paths under a prefix, relative to that prefix.
- `vulnscan.utils.file_walk` calls a function on each non-empty file under a root that appears in a set of relative paths.
- `vulnscan.utils.copy_file` copies a regular file and returns the number of bytes written.
- `vulnscan.utils.default_cache_dir()` returns `vulnscan` under the user cache directory, or under the temporary directory if there is no user cache directory. `cache_dir()` and `set_cache_dir()` read and set the configured cache directory.
- `vulnscan.types.get_docker_option(timeout)` builds registry options from these environment variables:
  - `TRIVY_USERNAME`
  - `TRIVY_PASSWORD`
  - `TRIVY_REGISTRY_TOKEN`
  - `TRIVY_INSECURE`
  - `TRIVY_NON_SSL`

## What the package does not do

`vulnscan` is a library only. It does not provide:

- a command-line program;
- an HTTP server or network transport;
- a vulnerability database or a way to download or update one;
- any analysis of images, archives, file systems or repositories.

You supply these yourself as objects:

- **`LocalScanner`** needs:
  - an applier that returns an `ArtifactDetail`;
  - an OS package detector;
  - a library detector.
- **`Scanner`** needs an artifact whose `inspect()` returns an `ArtifactReference`.
- **`RemoteScanner`** needs a client with a `scan(ctx, request)` method.
- **`ScanServer`** needs a scan driver and an object with `fill_info(...)` that fills in vulnerability details.
- **`CacheServer`** needs a cache that stores artifacts and blobs.

## Running the tests

```
pip install -e .[test]
pytest
```