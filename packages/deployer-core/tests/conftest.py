"""Shared pytest fixtures for deployer-core tests.

Provides:
- make_client_error: botocore ClientError built from an AWS error code
- fake_ecr: in-memory stand-in for a boto3 ECR client with ECR's error codes
- make_http_client: httpx client serving layer blobs through MockTransport
- span_exporter: in-memory OpenTelemetry span capture

NOTE: Do NOT add __init__.py to test directories - pytest runs in importlib
mode and package-style test directories collide on module names.
"""

from __future__ import annotations

import hashlib
import itertools
import json
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import structlog
from botocore.exceptions import ClientError

from deployer_core.telemetry.tracing import reset_tracer, set_tracer

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

DOCKER_V2 = "application/vnd.docker.distribution.manifest.v2+json"
LAYER_BASE_URL = "https://prod-us-east-1-starport-layer-bucket.s3.amazonaws.com"


def sha256_digest(content: bytes) -> str:
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


def client_error(code: str, operation: str = "Operation", message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


def v2_manifest(config: bytes, *layers: bytes) -> str:
    """Docker v2 manifest document referencing the given blobs."""
    return json.dumps(
        {
            "schemaVersion": 2,
            "mediaType": DOCKER_V2,
            "config": {
                "mediaType": "application/vnd.docker.container.image.v1+json",
                "size": len(config),
                "digest": sha256_digest(config),
            },
            "layers": [
                {
                    "mediaType": "application/vnd.docker.image.rootfs.diff.tar.gzip",
                    "size": len(layer),
                    "digest": sha256_digest(layer),
                }
                for layer in layers
            ],
        }
    )


class FakeECRClient:
    """In-memory ECR with the response shapes and error codes of boto3.

    Attributes:
        repositories: Existing repository names.
        images: (repository, tag) -> (manifest, media_type).
        layers: repository -> digest -> blob bytes.
        calls: Names of the API operations invoked, in order.
    """

    def __init__(self, repositories: set[str] | None = None) -> None:
        self.repositories: set[str] = set(repositories or ())
        self.images: dict[tuple[str, str], tuple[str, str | None]] = {}
        self.layers: dict[str, dict[str, bytes]] = {}
        self.created_repositories: list[dict[str, Any]] = []
        self.calls: list[str] = []
        self._uploads: dict[str, tuple[str, bytearray]] = {}
        self._upload_ids = itertools.count(1)
        self._lock = threading.Lock()

    def add_image(self, repository: str, tag: str, config: bytes, *layers: bytes) -> str:
        """Store an image and its blobs; return the manifest document."""
        manifest = v2_manifest(config, *layers)
        self.repositories.add(repository)
        self.images[(repository, tag)] = (manifest, DOCKER_V2)
        blobs = self.layers.setdefault(repository, {})
        for blob in (config, *layers):
            blobs[sha256_digest(blob)] = blob
        return manifest

    def _record(self, operation: str) -> None:
        with self._lock:
            self.calls.append(operation)

    def _require_repository(self, repository: str, operation: str) -> None:
        if repository not in self.repositories:
            raise client_error("RepositoryNotFoundException", operation)

    def batch_get_image(
        self, repositoryName: str, imageIds: list[dict[str, str]], **kwargs: Any
    ) -> dict[str, Any]:
        self._record("BatchGetImage")
        self._require_repository(repositoryName, "BatchGetImage")
        tag = imageIds[0]["imageTag"]
        stored = self.images.get((repositoryName, tag))
        if stored is None:
            return {
                "images": [],
                "failures": [{"imageId": {"imageTag": tag}, "failureCode": "ImageNotFound"}],
            }
        manifest, media_type = stored
        return {
            "images": [
                {
                    "repositoryName": repositoryName,
                    "imageId": {
                        "imageTag": tag,
                        "imageDigest": sha256_digest(manifest.encode()),
                    },
                    "imageManifest": manifest,
                    "imageManifestMediaType": media_type,
                }
            ],
            "failures": [],
        }

    def batch_check_layer_availability(
        self, repositoryName: str, layerDigests: list[str]
    ) -> dict[str, Any]:
        self._record("BatchCheckLayerAvailability")
        self._require_repository(repositoryName, "BatchCheckLayerAvailability")
        held = self.layers.get(repositoryName, {})
        return {
            "layers": [
                {"layerDigest": d, "layerAvailability": "AVAILABLE", "layerSize": len(held[d])}
                for d in layerDigests
                if d in held
            ],
            "failures": [
                {"layerDigest": d, "failureCode": "MissingLayerDigest"}
                for d in layerDigests
                if d not in held
            ],
        }

    def get_download_url_for_layer(self, repositoryName: str, layerDigest: str) -> dict[str, str]:
        self._record("GetDownloadUrlForLayer")
        if layerDigest not in self.layers.get(repositoryName, {}):
            raise client_error("LayersNotFoundException", "GetDownloadUrlForLayer")
        return {
            "downloadUrl": f"{LAYER_BASE_URL}/{layerDigest}?X-Amz-Signature=deadbeef",
            "layerDigest": layerDigest,
        }

    def initiate_layer_upload(self, repositoryName: str) -> dict[str, Any]:
        self._record("InitiateLayerUpload")
        self._require_repository(repositoryName, "InitiateLayerUpload")
        with self._lock:
            upload_id = f"upload-{next(self._upload_ids)}"
            self._uploads[upload_id] = (repositoryName, bytearray())
        return {"uploadId": upload_id, "partSize": 10485760}

    def upload_layer_part(
        self,
        repositoryName: str,
        uploadId: str,
        partFirstByte: int,
        partLastByte: int,
        layerPartBlob: bytes,
    ) -> dict[str, Any]:
        self._record("UploadLayerPart")
        _, buffer = self._uploads[uploadId]
        if partFirstByte != len(buffer) or partLastByte - partFirstByte + 1 != len(layerPartBlob):
            raise client_error("InvalidLayerPartException", "UploadLayerPart")
        buffer.extend(layerPartBlob)
        return {"uploadId": uploadId, "lastByteReceived": partLastByte}

    def complete_layer_upload(
        self, repositoryName: str, uploadId: str, layerDigests: list[str]
    ) -> dict[str, Any]:
        self._record("CompleteLayerUpload")
        _, buffer = self._uploads.pop(uploadId)
        digest = layerDigests[0]
        if sha256_digest(bytes(buffer)) != digest:
            raise client_error("LayerInvalidDigestException", "CompleteLayerUpload")
        with self._lock:
            held = self.layers.setdefault(repositoryName, {})
            if digest in held:
                raise client_error("LayerAlreadyExistsException", "CompleteLayerUpload")
            held[digest] = bytes(buffer)
        return {"layerDigest": digest}

    def put_image(
        self,
        repositoryName: str,
        imageManifest: str,
        imageTag: str,
        imageManifestMediaType: str | None = None,
    ) -> dict[str, Any]:
        self._record("PutImage")
        self._require_repository(repositoryName, "PutImage")
        existing = self.images.get((repositoryName, imageTag))
        if existing is not None:
            if existing[0] == imageManifest:
                raise client_error("ImageAlreadyExistsException", "PutImage")
            raise client_error("ImageTagAlreadyExistsException", "PutImage")

        document = json.loads(imageManifest)
        referenced = [document["config"]["digest"]]
        referenced.extend(layer["digest"] for layer in document["layers"])
        held = self.layers.get(repositoryName, {})
        if any(digest not in held for digest in referenced):
            raise client_error("LayersNotFoundException", "PutImage")

        self.images[(repositoryName, imageTag)] = (imageManifest, imageManifestMediaType)
        return {"image": {"repositoryName": repositoryName, "imageManifest": imageManifest}}

    def describe_repositories(self, repositoryNames: list[str]) -> dict[str, Any]:
        self._record("DescribeRepositories")
        self._require_repository(repositoryNames[0], "DescribeRepositories")
        return {"repositories": [{"repositoryName": repositoryNames[0]}]}

    def create_repository(self, **kwargs: Any) -> dict[str, Any]:
        self._record("CreateRepository")
        name = kwargs["repositoryName"]
        if name in self.repositories:
            raise client_error("RepositoryAlreadyExistsException", "CreateRepository")
        self.repositories.add(name)
        self.created_repositories.append(kwargs)
        return {"repository": {"repositoryName": name}}


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Restore structlog defaults so a test's configure_logging does not leak."""
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def reset_tracing() -> Generator[None, None, None]:
    """Clear cached tracers between tests."""
    reset_tracer()
    yield
    reset_tracer()


@pytest.fixture
def make_client_error() -> Callable[..., ClientError]:
    """Factory for botocore ClientErrors.

    Usage:
        def test_x(make_client_error) -> None:
            client.put_image.side_effect = make_client_error("ImageAlreadyExistsException")
    """
    return client_error


@pytest.fixture
def digest_of() -> Callable[[bytes], str]:
    """Return a function computing sha256:<hex> digests independently of the code under test."""
    return sha256_digest


@pytest.fixture
def fake_ecr() -> Callable[..., FakeECRClient]:
    """Factory for in-memory ECR clients."""
    return FakeECRClient


@pytest.fixture
def make_http_client() -> Callable[[FakeECRClient], httpx.Client]:
    """Factory for an httpx client serving the blobs held by a FakeECRClient.

    Requests must carry the presigned signature parameter; blob paths are
    the layer digests.
    """

    def factory(registry: FakeECRClient) -> httpx.Client:
        def handler(request: httpx.Request) -> httpx.Response:
            if "X-Amz-Signature" not in request.url.params:
                return httpx.Response(403, text="AccessDenied")
            digest = request.url.path.lstrip("/")
            for blobs in registry.layers.values():
                if digest in blobs:
                    return httpx.Response(200, content=blobs[digest])
            return httpx.Response(404, text="NoSuchKey")

        return httpx.Client(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def span_exporter() -> Generator[InMemorySpanExporter, None, None]:
    """Capture finished spans in memory.

    Yields:
        The exporter; ``get_finished_spans()`` returns captured spans.
    """
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import SimpleSpanProcessor
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    set_tracer(provider.get_tracer("deployer_core.tests"))
    yield exporter
    exporter.clear()
    provider.shutdown()


@pytest.fixture
def make_manifest() -> Callable[..., str]:
    """Return a function building a Docker v2 manifest from config and layer blobs."""
    return v2_manifest
