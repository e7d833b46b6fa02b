"""Conversions between scanner data types and RPC messages."""

from __future__ import annotations

import logging
from typing import Iterable

from vulnscan.results import Result, Results
from vulnscan.rpcmodels import (
    MissingBlobsRequest,
    PutArtifactRequest,
    PutBlobRequest,
    RpcApplication,
    RpcArtifactInfo,
    RpcBlobInfo,
    RpcCVSS,
    RpcLayer,
    RpcLibrary,
    RpcOS,
    RpcPackage,
    RpcPackageInfo,
    RpcResult,
    RpcSeverity,
    RpcVulnerability,
    ScanResponse,
    Timestamp,
)
from vulnscan.types import (
    BLOB_JSON_SCHEMA_VERSION,
    CVSS,
    OS,
    Application,
    ArtifactInfo,
    BlobInfo,
    DetectedVulnerability,
    Layer,
    Library,
    LibraryInfo,
    Package,
    PackageInfo,
    Severity,
    parse_severity,
)

logger = logging.getLogger(__name__)


def to_rpc_pkgs(pkgs: Iterable[Package]) -> list[RpcPackage]:
    """Convert packages to their RPC form."""
    return [
        RpcPackage(
            name=p.name,
            version=p.version,
            release=p.release,
            epoch=p.epoch,
            arch=p.arch,
            src_name=p.src_name,
            src_version=p.src_version,
            src_release=p.src_release,
            src_epoch=p.src_epoch,
        )
        for p in pkgs
    ]


def from_rpc_pkgs(rpc_pkgs: Iterable[RpcPackage]) -> list[Package]:
    """Convert RPC packages back to packages."""
    return [
        Package(
            name=p.name,
            version=p.version,
            release=p.release,
            epoch=p.epoch,
            arch=p.arch,
            src_name=p.src_name,
            src_version=p.src_version,
            src_release=p.src_release,
            src_epoch=p.src_epoch,
        )
        for p in rpc_pkgs
    ]


def from_rpc_libraries(rpc_libs: Iterable[RpcLibrary]) -> list[LibraryInfo]:
    """Convert RPC libraries to library infos."""
    return [LibraryInfo(library=Library(name=l.name, version=l.version)) for l in rpc_libs]


def to_rpc_libraries(libs: Iterable[Library]) -> list[RpcLibrary]:
    """Convert libraries to their RPC form."""
    return [RpcLibrary(name=l.name, version=l.version) for l in libs]


def to_rpc_layer(layer: Layer) -> RpcLayer:
    """Convert a layer to its RPC form."""
    return RpcLayer(digest=layer.digest, diff_id=layer.diff_id)


def from_rpc_layer(rpc_layer: RpcLayer | None) -> Layer:
    """Convert an RPC layer back to a layer; a missing layer becomes empty."""
    if rpc_layer is None:
        return Layer()
    return Layer(digest=rpc_layer.digest, diff_id=rpc_layer.diff_id)


def _to_timestamp(value) -> Timestamp | None:
    return Timestamp.from_datetime(value) if value is not None else None


def _from_timestamp(value: Timestamp | None):
    return value.to_datetime() if value is not None else None


def to_rpc_vulns(vulns: Iterable[DetectedVulnerability]) -> list[RpcVulnerability]:
    """Convert detected vulnerabilities to their RPC form."""
    rpc_vulns = []
    for v in vulns:
        try:
            severity = parse_severity(v.severity)
        except ValueError as e:
            logger.warning("%s", e)
            severity = Severity.UNKNOWN
        rpc_vulns.append(
            RpcVulnerability(
                vulnerability_id=v.vulnerability_id,
                pkg_name=v.pkg_name,
                installed_version=v.installed_version,
                fixed_version=v.fixed_version,
                title=v.title,
                description=v.description,
                severity=RpcSeverity(int(severity)),
                references=list(v.references),
                layer=to_rpc_layer(v.layer),
                cvss={
                    vendor: RpcCVSS(
                        v2_vector=c.v2_vector,
                        v3_vector=c.v3_vector,
                        v2_score=c.v2_score,
                        v3_score=c.v3_score,
                    )
                    for vendor, c in v.cvss.items()
                },
                severity_source=v.severity_source,
                cwe_ids=list(v.cwe_ids),
                primary_url=v.primary_url,
                last_modified_date=_to_timestamp(v.last_modified_date),
                published_date=_to_timestamp(v.published_date),
            )
        )
    return rpc_vulns


def from_rpc_vulns(rpc_vulns: Iterable[RpcVulnerability]) -> list[DetectedVulnerability]:
    """Convert RPC vulnerabilities back to detected vulnerabilities."""
    return [
        DetectedVulnerability(
            vulnerability_id=v.vulnerability_id,
            pkg_name=v.pkg_name,
            installed_version=v.installed_version,
            fixed_version=v.fixed_version,
            title=v.title,
            description=v.description,
            severity=RpcSeverity(v.severity).name,
            cvss={
                vendor: CVSS(
                    v2_vector=c.v2_vector,
                    v3_vector=c.v3_vector,
                    v2_score=c.v2_score,
                    v3_score=c.v3_score,
                )
                for vendor, c in v.cvss.items()
            },
            references=list(v.references),
            cwe_ids=list(v.cwe_ids),
            last_modified_date=_from_timestamp(v.last_modified_date),
            published_date=_from_timestamp(v.published_date),
            layer=from_rpc_layer(v.layer),
            severity_source=v.severity_source,
            primary_url=v.primary_url,
        )
        for v in rpc_vulns
    ]


def from_rpc_results(rpc_results: Iterable[RpcResult]) -> Results:
    """Convert RPC results to report results."""
    return Results(
        Result(
            target=r.target,
            vulnerabilities=from_rpc_vulns(r.vulnerabilities),
            type=r.type,
        )
        for r in rpc_results
    )


def from_rpc_os(rpc_os: RpcOS | None) -> OS | None:
    """Convert an RPC OS; None stays None."""
    if rpc_os is None:
        return None
    return OS(family=rpc_os.family, name=rpc_os.name)


def to_rpc_os(fos: OS | None) -> RpcOS | None:
    """Convert an OS to its RPC form; None stays None."""
    if fos is None:
        return None
    return RpcOS(family=fos.family, name=fos.name)


def from_rpc_package_infos(rpc_pkg_infos: Iterable[RpcPackageInfo]) -> list[PackageInfo]:
    """Convert RPC package infos."""
    return [
        PackageInfo(file_path=i.file_path, packages=from_rpc_pkgs(i.packages))
        for i in rpc_pkg_infos
    ]


def from_rpc_applications(rpc_apps: Iterable[RpcApplication]) -> list[Application]:
    """Convert RPC applications."""
    return [
        Application(
            type=a.type,
            file_path=a.file_path,
            libraries=from_rpc_libraries(a.libraries),
        )
        for a in rpc_apps
    ]


def from_rpc_put_artifact_request(req: PutArtifactRequest) -> ArtifactInfo:
    """Extract the artifact info from a put-artifact request."""
    info = req.artifact_info
    if info is None:
        raise ValueError("empty artifact info")
    return ArtifactInfo(
        schema_version=info.schema_version,
        architecture=info.architecture,
        created=_from_timestamp(info.created),
        docker_version=info.docker_version,
        os=info.os,
        history_packages=from_rpc_pkgs(info.history_packages),
    )


def from_rpc_put_blob_request(req: PutBlobRequest) -> BlobInfo:
    """Extract the blob info from a put-blob request."""
    info = req.blob_info
    if info is None:
        raise ValueError("empty blob info")
    return BlobInfo(
        schema_version=info.schema_version,
        digest=info.digest,
        diff_id=info.diff_id,
        os=from_rpc_os(info.os),
        package_infos=from_rpc_package_infos(info.package_infos),
        applications=from_rpc_applications(info.applications),
        opaque_dirs=list(info.opaque_dirs),
        whiteout_files=list(info.whiteout_files),
    )


def to_rpc_artifact_info(image_id: str, image_info: ArtifactInfo) -> PutArtifactRequest:
    """Build a put-artifact request."""
    return PutArtifactRequest(
        artifact_id=image_id,
        artifact_info=RpcArtifactInfo(
            schema_version=image_info.schema_version,
            architecture=image_info.architecture,
            created=_to_timestamp(image_info.created),
            docker_version=image_info.docker_version,
            os=image_info.os,
            history_packages=to_rpc_pkgs(image_info.history_packages),
        ),
    )


def to_rpc_blob_info(diff_id: str, blob_info: BlobInfo) -> PutBlobRequest:
    """Build a put-blob request."""
    package_infos = [
        RpcPackageInfo(file_path=i.file_path, packages=to_rpc_pkgs(i.packages))
        for i in blob_info.package_infos
    ]
    applications = [
        RpcApplication(
            type=app.type,
            file_path=app.file_path,
            libraries=to_rpc_libraries(lib.library for lib in app.libraries),
        )
        for app in blob_info.applications
    ]
    return PutBlobRequest(
        diff_id=diff_id,
        blob_info=RpcBlobInfo(
            schema_version=BLOB_JSON_SCHEMA_VERSION,
            digest=blob_info.digest,
            diff_id=blob_info.diff_id,
            os=to_rpc_os(blob_info.os),
            package_infos=package_infos,
            applications=applications,
            opaque_dirs=list(blob_info.opaque_dirs),
            whiteout_files=list(blob_info.whiteout_files),
        ),
    )


def to_missing_blobs_request(image_id: str, layer_ids: Iterable[str]) -> MissingBlobsRequest:
    """Build a missing-blobs request."""
    return MissingBlobsRequest(artifact_id=image_id, blob_ids=list(layer_ids))


def to_rpc_scan_response(
    results: Iterable[Result], os_found: OS | None, eosl: bool
) -> ScanResponse:
    """Build a scan response; the OS is always present, empty when unknown."""
    rpc_os = RpcOS()
    if os_found is not None:
        rpc_os = RpcOS(family=os_found.family, name=os_found.name)
    return ScanResponse(
        os=rpc_os,
        eosl=eosl,
        results=[
            RpcResult(
                target=r.target,
                type=r.type,
                vulnerabilities=to_rpc_vulns(r.vulnerabilities),
            )
            for r in results
        ],
    )