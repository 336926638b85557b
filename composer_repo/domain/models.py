"""
Pydantic models for the Composer repository.

This module defines the data models used outside the raw JSON documents:
- Repository configuration (which repositories exist and how they behave)
- The repository context handed to the document engine
- Hosted component catalog entries

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


RepositoryMode = Literal["hosted", "proxy", "group"]


# ---------------------------------------------------------------------------
# Repository Configuration Models
# ---------------------------------------------------------------------------


class ComposerRepositoryConfig(BaseModel):
    """
    Definition of a single Composer repository served by this instance.

    Hosted repositories serve uploaded archives, proxy repositories mirror a
    remote Composer repository, and group repositories merge their members.
    """

    name: str = Field(
        description="Repository name, used in URLs as /repository/<name>/.",
    )
    mode: RepositoryMode = Field(
        description="Delivery mode: 'hosted', 'proxy' or 'group'.",
    )
    remote_url: Optional[str] = Field(
        default=None,
        description="Base URL of the remote Composer repository (proxy mode only).",
    )
    members: List[str] = Field(
        default_factory=list,
        description="Names of member repositories in priority order (group mode only). Earlier members win.",
    )


def _default_repositories() -> List[ComposerRepositoryConfig]:
    return [
        ComposerRepositoryConfig(name="composer-hosted", mode="hosted"),
        ComposerRepositoryConfig(
            name="composer-proxy",
            mode="proxy",
            remote_url="https://repo.packagist.org",
        ),
        ComposerRepositoryConfig(
            name="composer-group",
            mode="group",
            members=["composer-hosted", "composer-proxy"],
        ),
    ]


class RepositoryConfig(BaseModel):
    """
    Top-level configuration for the Composer repository server.

    Persisted at: <DATA_DIR>/repository.json
    """

    public_url: Optional[str] = Field(
        default=None,
        description="Externally visible base URL of this server. If unset, the request's base URL is used.",
    )
    repositories: List[ComposerRepositoryConfig] = Field(
        default_factory=_default_repositories,
        description="Repositories served by this instance.",
    )

    def get_repository(self, name: str) -> Optional[ComposerRepositoryConfig]:
        for repository in self.repositories:
            if repository.name == name:
                return repository
        return None


class RepositoryContext(BaseModel):
    """
    Identity of the repository a document is being built for.

    All generated URLs (provider URL template, dist URLs) are rooted at ``url``.
    """

    name: str = Field(description="Repository name.")
    url: str = Field(description="Base URL of the repository, without trailing slash.")

    @classmethod
    def for_repository(cls, public_url: str, name: str) -> "RepositoryContext":
        return cls(name=name, url=f"{public_url.rstrip('/')}/repository/{name}")


# ---------------------------------------------------------------------------
# Hosted Component Models
# ---------------------------------------------------------------------------


class Component(BaseModel):
    """
    A hosted package version and the archive stored for it.

    Persisted in: <DATA_DIR>/hosted/<repository>/<vendor>/<project>/<version>/component.json
    """

    repository: str = Field(description="Name of the hosted repository owning this component.")
    vendor: str = Field(description="Vendor segment of the package name.")
    project: str = Field(description="Project segment of the package name.")
    version: str = Field(description="Package version string (e.g., '1.2.0').")
    blob_ref: str = Field(
        description="Reference of the archive in the blob store (path relative to the data directory).",
    )
    checksum: str = Field(description="SHA1 hex digest of the archive.")
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Timestamp of the last upload of this version.",
    )

    @property
    def name(self) -> str:
        return f"{self.vendor}/{self.project}"
