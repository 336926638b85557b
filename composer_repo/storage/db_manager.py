from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

from composer_repo.domain.models import Component, RepositoryConfig


class ComponentStore(ABC):
    """
    Abstract base class for repository configuration, the hosted component
    catalog and the blob store holding archive bytes.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the storage subsystem (e.g. load from disk)."""
        pass

    @abstractmethod
    def get_repository_config(self) -> RepositoryConfig:
        """Retrieve repository configuration."""
        pass

    @abstractmethod
    def save_repository_config(self, config: RepositoryConfig) -> None:
        """Save repository configuration."""
        pass

    @abstractmethod
    def list_components(
        self,
        repository: str,
        vendor: Optional[str] = None,
        project: Optional[str] = None,
    ) -> List[Component]:
        """
        List components of a hosted repository in upload order, optionally
        narrowed to one vendor or one vendor/project.
        """
        pass

    @abstractmethod
    def get_component(self, repository: str, vendor: str, project: str, version: str) -> Optional[Component]:
        """Get a single component, or None if it does not exist."""
        pass

    @abstractmethod
    def add_component(self, repository: str, vendor: str, project: str, version: str, content: bytes) -> Component:
        """
        Store an archive and register it as a component (create or replace).
        """
        pass

    @abstractmethod
    def fetch_blob(self, blob_ref: str) -> Tuple[bytes, str]:
        """Return the archive bytes and their SHA1 checksum."""
        pass

    @abstractmethod
    def get_file_path(self, component: Component) -> Path:
        """
        Get the absolute path to the archive on disk.
        Required for serving downloads.
        """
        pass
