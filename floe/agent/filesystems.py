import getpass
import os
import shutil
from pathlib import Path
from typing import Any, Optional, Protocol, Tuple
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from pydantic import BaseModel

from floe.agent.config import S3_ACCESS_KEY, S3_ENDPOINT, S3_REGION, S3_SECRET_KEY
from floe.logger.common import logger


class RemoteFileStatus(BaseModel):
    path: str
    length: int
    modification_time: int  # epoch millis


class RemoteFileSystem(Protocol):
    def copy_from_local(self, local_path: Path, remote_path: str) -> None:
        """Copy a local file to the remote path, overwriting any existing file."""
        ...

    def stat(self, remote_path: str) -> RemoteFileStatus:
        """Get size and modification time of a remote file."""
        ...

    def home_directory(self) -> str:
        """Qualified URI of the invoking user's home directory."""
        ...

    def make_qualified(self, path: str) -> str:
        """Return the fully qualified URI for a path on this filesystem."""
        ...


def join_path(root: str, *parts: str) -> str:
    return "/".join([root.rstrip("/")] + [p.strip("/") for p in parts])


class LocalFileSystem(RemoteFileSystem):
    """
    Cluster-visible storage on a locally mounted path (e.g. NFS shared by all
    container hosts). Paths may be plain or ``file://`` URIs.
    """

    def __init__(self, home: Optional[str] = None):
        self.home = home

    def _to_path(self, path: str) -> Path:
        parsed = urlparse(path)
        if parsed.scheme not in ("", "file"):
            raise ValueError(f"Not a local path: {path}")
        return Path(unquote(parsed.path) if parsed.scheme else path)

    def make_qualified(self, path: str) -> str:
        return self._to_path(path).absolute().as_uri()

    def copy_from_local(self, local_path: Path, remote_path: str) -> None:
        dst = self._to_path(remote_path)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_path, dst)

    def stat(self, remote_path: str) -> RemoteFileStatus:
        st = os.stat(self._to_path(remote_path))
        return RemoteFileStatus(
            path=self.make_qualified(remote_path),
            length=st.st_size,
            modification_time=int(st.st_mtime * 1000),
        )

    def home_directory(self) -> str:
        return self.make_qualified(self.home or str(Path.home()))


def split_s3_uri(uri: str) -> Tuple[str, str]:
    parsed = urlparse(uri)
    if parsed.scheme != "s3" or not parsed.netloc:
        raise ValueError(f"Not an S3 URI: {uri}")
    return parsed.netloc, parsed.path.lstrip("/")


class S3FileSystem(RemoteFileSystem):
    """
    S3-compatible object storage (AWS S3, MinIO, LocalStack).

    Works on ``s3://bucket/key`` URIs.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = S3_ENDPOINT,
        region: str = S3_REGION,
        access_key: Optional[str] = S3_ACCESS_KEY,
        secret_key: Optional[str] = S3_SECRET_KEY,
        client: Any = None,
    ):
        self.bucket = bucket
        if client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": region,
                "config": Config(signature_version="s3v4"),
            }
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            if access_key and secret_key:
                client_kwargs["aws_access_key_id"] = access_key
                client_kwargs["aws_secret_access_key"] = secret_key
            client = boto3.client(**client_kwargs)
        self.client = client

    def make_qualified(self, path: str) -> str:
        if path.startswith("s3://"):
            return path
        return f"s3://{self.bucket}/{path.lstrip('/')}"

    def copy_from_local(self, local_path: Path, remote_path: str) -> None:
        bucket, key = split_s3_uri(self.make_qualified(remote_path))
        self.client.upload_file(str(local_path), bucket, key)

    def stat(self, remote_path: str) -> RemoteFileStatus:
        uri = self.make_qualified(remote_path)
        bucket, key = split_s3_uri(uri)
        response = self.client.head_object(Bucket=bucket, Key=key)
        return RemoteFileStatus(
            path=uri,
            length=response["ContentLength"],
            modification_time=int(response["LastModified"].timestamp() * 1000),
        )

    def home_directory(self) -> str:
        return f"s3://{self.bucket}/user/{getpass.getuser()}"


def filesystem_for(uri: str) -> RemoteFileSystem:
    """Pick a filesystem backend by URI scheme."""
    parsed = urlparse(uri)
    if parsed.scheme == "s3":
        bucket, _ = split_s3_uri(uri)
        logger.info(f"Using S3 bucket {bucket} as staging filesystem.")
        return S3FileSystem(bucket)
    if parsed.scheme in ("", "file"):
        return LocalFileSystem()
    raise ValueError(f"Unsupported filesystem scheme '{parsed.scheme}' in {uri}")
