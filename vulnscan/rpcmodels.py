"""Message types exchanged between the scan client and server."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NANOS_PER_SECOND = 1_000_000_000


class RpcSeverity(IntEnum):
    """Severity as carried on the wire."""

    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Timestamp:
    """A point in time as seconds and nanoseconds since the Unix epoch."""

    seconds: int = 0
    nanos: int = 0

    @classmethod
    def from_datetime(cls, value: datetime) -> Timestamp:
        """Build a timestamp from a datetime; naive values count as UTC."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        micros = (value - _EPOCH) // timedelta(microseconds=1)
        seconds, rest = divmod(micros, 1_000_000)
        return cls(seconds=seconds, nanos=rest * 1000)

    def to_datetime(self) -> datetime:
        """Return the timestamp as an aware UTC datetime (microsecond precision)."""
        if not 0 <= self.nanos < _NANOS_PER_SECOND:
            raise ValueError(f"timestamp nanos out of range: {self.nanos}")
        return _EPOCH + timedelta(seconds=self.seconds, microseconds=self.nanos // 1000)


class TwirpErrorCode(str, Enum):
    """Error codes of the RPC protocol."""

    CANCELED = "canceled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid_argument"
    MALFORMED = "malformed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOT_FOUND = "not_found"
    BAD_ROUTE = "bad_route"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    UNAUTHENTICATED = "unauthenticated"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    FAILED_PRECONDITION = "failed_precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out_of_range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "dataloss"


class TwirpError(Exception):
    """An error reported by the RPC layer, carrying a protocol error code."""

    def __init__(self, code: TwirpErrorCode, msg: str) -> None:
        super().__init__(f"twirp error {code.value}: {msg}")
        self.code = code
        self.msg = msg


@dataclass
class RpcPackage:
    name: str = ""
    version: str = ""
    release: str = ""
    epoch: int = 0
    arch: str = ""
    src_name: str = ""
    src_version: str = ""
    src_release: str = ""
    src_epoch: int = 0


@dataclass
class RpcLibrary:
    name: str = ""
    version: str = ""


@dataclass
class RpcCVSS:
    v2_vector: str = ""
    v3_vector: str = ""
    v2_score: float = 0.0
    v3_score: float = 0.0


@dataclass
class RpcLayer:
    digest: str = ""
    diff_id: str = ""


@dataclass
class RpcVulnerability:
    vulnerability_id: str = ""
    pkg_name: str = ""
    installed_version: str = ""
    fixed_version: str = ""
    title: str = ""
    description: str = ""
    severity: RpcSeverity = RpcSeverity.UNKNOWN
    references: list[str] = field(default_factory=list)
    layer: RpcLayer | None = None
    cvss: dict[str, RpcCVSS] = field(default_factory=dict)
    severity_source: str = ""
    cwe_ids: list[str] = field(default_factory=list)
    primary_url: str = ""
    last_modified_date: Timestamp | None = None
    published_date: Timestamp | None = None


@dataclass
class RpcOS:
    family: str = ""
    name: str = ""


@dataclass
class RpcPackageInfo:
    file_path: str = ""
    packages: list[RpcPackage] = field(default_factory=list)


@dataclass
class RpcApplication:
    type: str = ""
    file_path: str = ""
    libraries: list[RpcLibrary] = field(default_factory=list)


@dataclass
class RpcArtifactInfo:
    schema_version: int = 0
    architecture: str = ""
    created: Timestamp | None = None
    docker_version: str = ""
    os: str = ""
    history_packages: list[RpcPackage] = field(default_factory=list)


@dataclass
class PutArtifactRequest:
    artifact_id: str = ""
    artifact_info: RpcArtifactInfo | None = None


@dataclass
class RpcBlobInfo:
    schema_version: int = 0
    digest: str = ""
    diff_id: str = ""
    os: RpcOS | None = None
    package_infos: list[RpcPackageInfo] = field(default_factory=list)
    applications: list[RpcApplication] = field(default_factory=list)
    opaque_dirs: list[str] = field(default_factory=list)
    whiteout_files: list[str] = field(default_factory=list)


@dataclass
class PutBlobRequest:
    diff_id: str = ""
    blob_info: RpcBlobInfo | None = None


@dataclass
class MissingBlobsRequest:
    artifact_id: str = ""
    blob_ids: list[str] = field(default_factory=list)


@dataclass
class MissingBlobsResponse:
    missing_artifact: bool = False
    missing_blob_ids: list[str] = field(default_factory=list)


@dataclass
class RpcScanOptions:
    vuln_type: list[str] = field(default_factory=list)
    security_checks: list[str] = field(default_factory=list)


@dataclass
class ScanRequest:
    target: str = ""
    artifact_id: str = ""
    blob_ids: list[str] = field(default_factory=list)
    options: RpcScanOptions | None = None


@dataclass
class RpcResult:
    target: str = ""
    type: str = ""
    vulnerabilities: list[RpcVulnerability] = field(default_factory=list)


@dataclass
class ScanResponse:
    os: RpcOS | None = None
    eosl: bool = False
    results: list[RpcResult] = field(default_factory=list)