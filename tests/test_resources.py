from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from floe.agent.filesystems import LocalFileSystem, S3FileSystem, filesystem_for
from floe.agent.resources import (
    LocalResourceType,
    LocalResourceVisibility,
    ResourceProvisioner,
)


def _artifact(tmp_path: Path, name: str = "job.jar", content: bytes = b"jar-bytes") -> Path:
    src = tmp_path / "local" / name
    src.parent.mkdir(parents=True, exist_ok=True)
    src.write_bytes(content)
    return src


def test_provision_copies_into_application_staging_dir(tmp_path: Path) -> None:
    src = _artifact(tmp_path)
    root = tmp_path / "cluster"
    provisioner = ResourceProvisioner(LocalFileSystem())

    desc = provisioner.provision(src, "application_0001", str(root))

    staged = root / ".floe" / "application_0001" / "job.jar"
    assert staged.read_bytes() == b"jar-bytes"
    assert desc.resource == staged.as_uri()
    assert desc.size == len(b"jar-bytes")
    assert desc.type == LocalResourceType.FILE
    assert desc.visibility == LocalResourceVisibility.APPLICATION


def test_descriptor_reflects_remote_copy(tmp_path: Path) -> None:
    src = _artifact(tmp_path)
    root = tmp_path / "cluster"
    provisioner = ResourceProvisioner(LocalFileSystem())
    desc = provisioner.provision(src, "app", str(root))

    staged = root / ".floe" / "app" / "job.jar"
    os.utime(staged, (1_700_000_000, 1_700_000_000))
    again = provisioner.register_existing(desc.resource)

    assert again.timestamp == 1_700_000_000_000
    assert again.size == staged.stat().st_size


def test_provision_is_idempotent_in_location(tmp_path: Path) -> None:
    root = tmp_path / "cluster"
    provisioner = ResourceProvisioner(LocalFileSystem())

    first = provisioner.provision(_artifact(tmp_path, content=b"v1"), "app", str(root))
    second = provisioner.provision(_artifact(tmp_path, content=b"version-2"), "app", str(root))

    assert first.resource == second.resource
    staged_dir = root / ".floe" / "app"
    assert [p.name for p in staged_dir.iterdir()] == ["job.jar"]
    assert (staged_dir / "job.jar").read_bytes() == b"version-2"
    assert second.size == len(b"version-2")


def test_provision_defaults_to_home_directory(tmp_path: Path) -> None:
    provisioner = ResourceProvisioner(LocalFileSystem(home=str(tmp_path / "home")))
    desc = provisioner.provision(_artifact(tmp_path), "app")
    assert desc.resource == (tmp_path / "home" / ".floe" / "app" / "job.jar").as_uri()


def test_missing_local_file_propagates(tmp_path: Path) -> None:
    provisioner = ResourceProvisioner(LocalFileSystem())
    with pytest.raises(FileNotFoundError):
        provisioner.provision(tmp_path / "nope.jar", "app", str(tmp_path / "cluster"))


def test_register_existing_missing_remote_propagates(tmp_path: Path) -> None:
    provisioner = ResourceProvisioner(LocalFileSystem())
    with pytest.raises(FileNotFoundError):
        provisioner.register_existing(str(tmp_path / "missing.jar"))


class FakeS3Client:
    def __init__(self):
        self.objects = {}

    def upload_file(self, filename, bucket, key):
        with open(filename, "rb") as f:
            self.objects[(bucket, key)] = f.read()

    def head_object(self, Bucket, Key):
        body = self.objects[(Bucket, Key)]
        return {
            "ContentLength": len(body),
            "LastModified": datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
        }


def test_s3_provisioning_uses_bucket_staging_key(tmp_path: Path) -> None:
    client = FakeS3Client()
    fs = S3FileSystem("data", client=client)
    provisioner = ResourceProvisioner(fs)

    desc = provisioner.provision(_artifact(tmp_path), "app_7", "s3://data/flows")

    assert ("data", "flows/.floe/app_7/job.jar") in client.objects
    assert desc.resource == "s3://data/flows/.floe/app_7/job.jar"
    assert desc.size == len(b"jar-bytes")
    assert desc.timestamp == int(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)


def test_filesystem_for_selects_backend_by_scheme() -> None:
    assert isinstance(filesystem_for("/tmp/x"), LocalFileSystem)
    assert isinstance(filesystem_for("file:///tmp/x"), LocalFileSystem)
    with pytest.raises(ValueError):
        filesystem_for("hdfs://namenode/user")
