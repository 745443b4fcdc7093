"""S3-compatible object storage transport (AWS, OVH, MinIO, etc.).

Object stores have no directories: make_directory() and remove_directory()
are no-ops. Files at or above the multipart threshold are uploaded through
the resumable protocol, so an interrupted upload resumes after a restart.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO

from syncwatch.core.config import (
    DEFAULT_CHECKPOINT_DIR,
    DEFAULT_MULTIPART_THRESHOLD,
    DEFAULT_PART_SIZE,
    BackendKind,
    ServerConfig,
)
from syncwatch.transports.base import (
    AuthError,
    NetworkError,
    NotFoundError,
    RemoteEntry,
    TransferError,
    Transport,
)
from syncwatch.upload import CheckpointStore, PartRecord, ResumableUploader

if TYPE_CHECKING:
    from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

_AUTH_CODES = {"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch", "403"}
_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3Transport(Transport):
    """Transport for S3-compatible object storage."""

    backend_kind = BackendKind.S3
    supports_directories = False

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str | None = None,
        force_path_style: bool = False,
        checkpoint_dir: Path | str = DEFAULT_CHECKPOINT_DIR,
        part_size: int = DEFAULT_PART_SIZE,
        multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD,
    ) -> None:
        """Initialize S3 transport.

        Args:
            bucket: S3 bucket name.
            endpoint_url: Custom endpoint URL (for OVH, MinIO, etc.).
            access_key: Access key ID, None to use the default credential chain.
            secret_key: Secret access key.
            region: Region name.
            force_path_style: Address the bucket in the path instead of the host.
            checkpoint_dir: Directory for multipart upload checkpoints.
            part_size: Multipart part size in bytes.
            multipart_threshold: Size from which uploads go multipart.
        """
        self._bucket = bucket
        self._endpoint_url = endpoint_url
        self._access_key = access_key
        self._secret_key = secret_key
        self._region = region
        self._force_path_style = force_path_style
        self._client: Any = None
        self._uploader = ResumableUploader(
            backend=self,
            checkpoints=CheckpointStore(checkpoint_dir),
            part_size=part_size,
            threshold=multipart_threshold,
        )

    @classmethod
    def from_config(
        cls,
        server: ServerConfig,
        checkpoint_dir: Path | str = DEFAULT_CHECKPOINT_DIR,
        part_size: int = DEFAULT_PART_SIZE,
        multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD,
    ) -> S3Transport:
        """Create from server configuration."""
        if not server.bucket:
            raise ValueError("S3 transport requires a bucket")
        return cls(
            bucket=server.bucket,
            endpoint_url=server.endpoint_url,
            access_key=server.access_key,
            secret_key=server.secret_key,
            region=server.region,
            force_path_style=server.force_path_style,
            checkpoint_dir=checkpoint_dir,
            part_size=part_size,
            multipart_threshold=multipart_threshold,
        )

    @property
    def location(self) -> str:
        """Return the S3 bucket location."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}/{self._bucket}"
        return f"S3: s3://{self._bucket}"

    @staticmethod
    def _key(remote_path: str) -> str:
        """Get the object key for a remote path."""
        return remote_path.lstrip("/")

    def _require_client(self) -> Any:
        if self._client is None:
            raise NetworkError("S3 client not connected")
        return self._client

    def _translate(self, error: Exception, remote_path: str | None = None) -> Exception:
        """Map a boto error onto the transport error taxonomy."""
        from botocore.exceptions import (
            ClientError,
            EndpointConnectionError,
            NoCredentialsError,
        )

        if isinstance(error, NoCredentialsError):
            return AuthError(str(error), remote_path)
        if isinstance(error, EndpointConnectionError):
            return NetworkError(str(error), remote_path)
        if isinstance(error, ClientError):
            code = _error_code(error)
            if code in _AUTH_CODES:
                return AuthError(str(error), remote_path)
            if code in _NOT_FOUND_CODES:
                return NotFoundError(str(error), remote_path)
        return TransferError(str(error), remote_path)

    def connect(self) -> None:
        """Create the client and check that the bucket is reachable."""
        import boto3
        from botocore.config import Config
        from botocore.exceptions import BotoCoreError, ClientError

        client_config = Config(s3={"addressing_style": "path"}) if self._force_path_style else None
        self._client = boto3.client(
            "s3",
            endpoint_url=self._endpoint_url,
            aws_access_key_id=self._access_key,
            aws_secret_access_key=self._secret_key,
            region_name=self._region,
            config=client_config,
        )
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except (BotoCoreError, ClientError) as e:
            self._client = None
            translated = self._translate(e)
            if isinstance(translated, AuthError):
                raise translated from e
            raise NetworkError(f"Bucket {self._bucket} not reachable: {e}") from e

    # -- MultipartBackend -------------------------------------------------

    def create_multipart(self, key: str) -> str:
        """Begin a multipart upload session."""
        response = self._require_client().create_multipart_upload(Bucket=self._bucket, Key=key)
        return str(response["UploadId"])

    def upload_part(self, key: str, upload_id: str, part_index: int, body: bytes) -> str:
        """Upload one part and return its ETag."""
        response = self._require_client().upload_part(
            Bucket=self._bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_index,
            Body=body,
        )
        return str(response["ETag"])

    def complete_multipart(self, key: str, upload_id: str, parts: list[PartRecord]) -> None:
        """Assemble the uploaded parts into the final object."""
        self._require_client().complete_multipart_upload(
            Bucket=self._bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [{"PartNumber": p.part_index, "ETag": p.part_tag} for p in parts]
            },
        )

    # -- Transport --------------------------------------------------------

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        """Upload a file, using resumable multipart for large files."""
        from botocore.exceptions import BotoCoreError, ClientError

        key = self._key(remote_path)
        client = self._require_client()
        try:
            size = local_path.stat().st_size
            if self._uploader.should_use_multipart(size):
                self._uploader.upload(local_path, key)
                return
            with open(local_path, "rb") as f:
                client.put_object(Bucket=self._bucket, Key=key, Body=f)
        except (BotoCoreError, ClientError) as e:
            raise self._translate(e, remote_path) from e
        except OSError as e:
            raise TransferError(f"Cannot read {local_path}: {e}", remote_path) from e

    def upload_bytes(self, payload: bytes | BinaryIO, remote_path: str) -> None:
        """Upload a buffer or stream as a single object."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._require_client().put_object(
                Bucket=self._bucket, Key=self._key(remote_path), Body=payload
            )
        except (BotoCoreError, ClientError) as e:
            raise self._translate(e, remote_path) from e

    def delete(self, remote_path: str) -> None:
        """Delete an object. S3 reports success for missing keys."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._require_client().delete_object(Bucket=self._bucket, Key=self._key(remote_path))
        except (BotoCoreError, ClientError) as e:
            raise self._translate(e, remote_path) from e

    def make_directory(self, remote_path: str, recursive: bool = True) -> None:
        """No directories in object storage."""

    def remove_directory(self, remote_path: str, recursive: bool = True) -> None:
        """No directories in object storage."""

    def list(self, remote_path: str) -> list[RemoteEntry]:
        """List objects under a key prefix."""
        from botocore.exceptions import BotoCoreError, ClientError

        prefix = self._key(remote_path)
        entries: list[RemoteEntry] = []
        try:
            paginator = self._require_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    entries.append(RemoteEntry(name=obj["Key"], size=int(obj["Size"])))
        except (BotoCoreError, ClientError, NetworkError) as e:
            logger.debug(f"list {prefix} failed: {e}")
            return []
        return sorted(entries, key=lambda entry: entry.name)

    def close(self) -> None:
        """Drop the client."""
        self._client = None
