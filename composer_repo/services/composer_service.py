"""
Serve Composer documents and archives for hosted, proxy and group repositories.

This service handles:
- Resolving a repository name to its configuration and URL context
- Building packages.json and provider documents for each delivery mode
- Fetching archives from the store, the remote, or the first group member having them
- Accepting uploads into hosted repositories
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, FrozenSet, List, Optional, Tuple

from composer_repo.domain.composer_json import ComposerJsonProcessor
from composer_repo.domain.composer_paths import LIST_JSON_PATH, provider_path, split_package_name, validate_version
from composer_repo.domain.exceptions import NotFound, RepositoryNotFound, UnsupportedOperation, UpstreamError
from composer_repo.domain.json_document import JsonDocument, parse
from composer_repo.domain.models import Component, ComposerRepositoryConfig, RepositoryContext
from composer_repo.services.upstream import UpstreamClient
from composer_repo.storage.db_manager import ComponentStore

logger = logging.getLogger(__name__)


class ComposerRepositoryService:
    """
    Dispatches document and archive requests on the repository's mode.

    Group members are consulted sequentially in their configured order; that
    order decides which member wins when versions overlap.
    """

    def __init__(
        self,
        store: ComponentStore,
        processor: ComposerJsonProcessor,
        upstream: UpstreamClient,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.processor = processor
        self.upstream = upstream
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def resolve(self, name: str, public_url: str) -> Tuple[ComposerRepositoryConfig, RepositoryContext]:
        config = self.store.get_repository_config()
        repository = config.get_repository(name)
        if repository is None:
            raise RepositoryNotFound(f"Repository {name} not found")
        base_url = config.public_url or public_url
        return repository, RepositoryContext.for_repository(base_url, name)

    # ========================================================================
    # packages.json
    # ========================================================================

    async def get_packages(self, name: str, public_url: str, _chain: FrozenSet[str] = frozenset()) -> JsonDocument:
        repository, context = self.resolve(name, public_url)

        if repository.mode == "hosted":
            return self.processor.build_packages_from_components(context, self.store.list_components(name))

        if repository.mode == "proxy":
            url = self._remote_url(repository, LIST_JSON_PATH)
            payload = await self.upstream.fetch(url)
            if payload is None:
                raise UpstreamError(f"Remote {url} has no package list")
            return self.processor.build_packages_from_list(context, parse(payload))

        documents = []
        for member in self._members(repository, _chain):
            documents.append(await self.get_packages(member, public_url, _chain | {name}))
        return self.processor.merge_packages_documents(context, documents)

    # ========================================================================
    # Provider documents
    # ========================================================================

    async def get_provider(
        self,
        name: str,
        public_url: str,
        vendor: str,
        project: str,
        _chain: FrozenSet[str] = frozenset(),
    ) -> Optional[JsonDocument]:
        """
        Return the provider document for vendor/project, or None if this
        repository does not know the package.
        """
        repository, context = self.resolve(name, public_url)

        if repository.mode == "hosted":
            components = self.store.list_components(name, vendor, project)
            if not components:
                return None
            return self.processor.build_provider_document(context, components, self.store)

        if repository.mode == "proxy":
            document = await self._fetch_remote_provider(repository, vendor, project)
            if document is None:
                return None
            return self.processor.rewrite_provider_document(context, document)

        documents = []
        for member in self._members(repository, _chain):
            document = await self.get_provider(member, public_url, vendor, project, _chain | {name})
            if document is not None:
                documents.append(document)
        if not documents:
            return None
        return self.processor.merge_provider_documents(context, documents, self.clock())

    # ========================================================================
    # Archives
    # ========================================================================

    async def get_archive(
        self,
        name: str,
        public_url: str,
        vendor: str,
        project: str,
        version: str,
        _chain: FrozenSet[str] = frozenset(),
    ) -> Optional[bytes]:
        repository, _ = self.resolve(name, public_url)

        if repository.mode == "hosted":
            component = self.store.get_component(name, vendor, project, version)
            if component is None:
                return None
            content, _ = self.store.fetch_blob(component.blob_ref)
            return content

        if repository.mode == "proxy":
            document = await self._fetch_remote_provider(repository, vendor, project)
            if document is None:
                return None
            try:
                dist_url = self.processor.get_dist_url(document, vendor, project, version)
            except NotFound:
                logger.info(f"Remote of {name} has no dist for {vendor}/{project} {version}")
                return None
            return await self.upstream.fetch(dist_url)

        for member in self._members(repository, _chain):
            content = await self.get_archive(member, public_url, vendor, project, version, _chain | {name})
            if content is not None:
                return content
        return None

    # ========================================================================
    # Uploads
    # ========================================================================

    def upload(self, name: str, vendor: str, project: str, version: str, content: bytes) -> Component:
        """
        Store an archive in a hosted repository.

        The package name must be 'vendor/project' and the archive must contain
        a readable composer.json.
        """
        config = self.store.get_repository_config()
        repository = config.get_repository(name)
        if repository is None:
            raise RepositoryNotFound(f"Repository {name} not found")
        if repository.mode != "hosted":
            raise UnsupportedOperation(
                f"Repository {name} is a {repository.mode} repository and does not accept uploads"
            )

        split_package_name(f"{vendor}/{project}")
        validate_version(version)
        self.processor.extractor.extract(content)
        return self.store.add_component(name, vendor, project, version, content)

    # ------------------------------------------------------------------

    def _members(self, repository: ComposerRepositoryConfig, chain: FrozenSet[str]) -> List[str]:
        members = []
        for member in repository.members:
            if member == repository.name or member in chain:
                logger.warning(f"Ignoring cyclic member {member} of group {repository.name}")
                continue
            members.append(member)
        return members

    def _remote_url(self, repository: ComposerRepositoryConfig, path: str) -> str:
        if not repository.remote_url:
            raise UpstreamError(f"Proxy repository {repository.name} has no remote_url")
        return f"{repository.remote_url.rstrip('/')}/{path}"

    async def _fetch_remote_provider(
        self, repository: ComposerRepositoryConfig, vendor: str, project: str
    ) -> Optional[JsonDocument]:
        payload = await self.upstream.fetch(self._remote_url(repository, provider_path(vendor, project)))
        if payload is None:
            return None
        return parse(payload)
