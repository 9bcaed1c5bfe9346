from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from floe.agent.config import STAGING_NAMESPACE
from floe.agent.filesystems import RemoteFileSystem, join_path
from floe.logger.common import logger


class LocalResourceType(str, Enum):
    FILE = "FILE"


class LocalResourceVisibility(str, Enum):
    APPLICATION = "APPLICATION"


class LocalResourceDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    resource: str  # remote URI
    size: int
    timestamp: int  # epoch millis, as reported by the remote store
    visibility: LocalResourceVisibility = LocalResourceVisibility.APPLICATION
    type: LocalResourceType = LocalResourceType.FILE


class ResourceProvisioner:
    """
    Stages local artifacts in cluster-visible storage so the resource manager
    can localize them into a container before it starts.
    """

    def __init__(self, filesystem: RemoteFileSystem):
        self.filesystem = filesystem

    def staging_path(
        self, app_id: str, file_name: str, destination_root: Optional[str] = None
    ) -> str:
        root = destination_root or self.filesystem.home_directory()
        return join_path(
            self.filesystem.make_qualified(root), STAGING_NAMESPACE, app_id, file_name
        )

    def provision(
        self,
        local_path: Union[str, Path],
        app_id: str,
        destination_root: Optional[str] = None,
    ) -> LocalResourceDescriptor:
        """
        Copy ``local_path`` to ``<root>/.floe/<app_id>/<file name>`` and
        describe the remote copy. An existing copy is overwritten.
        I/O errors propagate as raised by the filesystem.
        """
        local_path = Path(local_path)
        dst = self.staging_path(app_id, local_path.name, destination_root)
        logger.info(f"Copying from {local_path} to {dst}")
        self.filesystem.copy_from_local(local_path, dst)
        return self.register_existing(dst)

    def register_existing(self, remote_path: str) -> LocalResourceDescriptor:
        status = self.filesystem.stat(remote_path)
        return LocalResourceDescriptor(
            resource=status.path,
            size=status.length,
            timestamp=status.modification_time,
        )
