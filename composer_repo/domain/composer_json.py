"""
JSON processing for Composer-format repositories.

Builds, rewrites and merges the packages.json and provider documents served to
Composer clients so that every zip dist points back at this repository.
"""
from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from composer_repo.domain.composer_fields import PASS_THROUGH_KEYS, ZIP_TYPE, ComposerField
from composer_repo.domain.composer_paths import PROVIDER_URL_TEMPLATE, split_package_name, zipball_path
from composer_repo.domain.exceptions import ExtractionFailure, NotFound
from composer_repo.domain.json_document import (
    JsonDocument,
    expect_mapping,
    expect_sequence,
    expect_string,
    get_mapping,
    get_optional_string,
    parse,
    serialize,
)
from composer_repo.domain.models import Component, RepositoryContext
from composer_repo.services.composer_extractor import ComposerJsonExtractor
from composer_repo.storage.db_manager import ComponentStore

logger = logging.getLogger(__name__)

NAME = ComposerField.NAME.value
VERSION = ComposerField.VERSION.value
DIST = ComposerField.DIST.value
TIME = ComposerField.TIME.value
UID = ComposerField.UID.value
URL = ComposerField.URL.value
TYPE = ComposerField.TYPE.value
REFERENCE = ComposerField.REFERENCE.value
SHASUM = ComposerField.SHASUM.value
SOURCE = ComposerField.SOURCE.value
PACKAGES = ComposerField.PACKAGES.value
PACKAGE_NAMES = ComposerField.PACKAGE_NAMES.value
PROVIDERS = ComposerField.PROVIDERS.value
PROVIDERS_URL = ComposerField.PROVIDERS_URL.value
SHA256 = ComposerField.SHA256.value


def format_time(value: datetime) -> str:
    """
    Render a timestamp as 'YYYY-MM-DDTHH:MM:SS+00:00' in UTC.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def compute_uid(name: str, version: str, time: str) -> int:
    """
    Deterministic 32-bit identifier for a release.

    First four bytes of md5(name + version + time), read little-endian.
    """
    h = hashlib.md5()
    h.update(name.encode("utf-8"))
    h.update(version.encode("utf-8"))
    h.update(time.encode("utf-8"))
    return int.from_bytes(h.digest()[:4], "little")


def copy_pass_through_fields(source: Dict[str, Any], target: Dict[str, Any]) -> None:
    for key, value in source.items():
        if key in PASS_THROUGH_KEYS:
            target[key] = value


class ComposerJsonProcessor:
    """
    Parses Composer JSON indexes and rewrites or merges them for hosted, proxy
    and group repositories.
    """

    def __init__(self, extractor: ComposerJsonExtractor):
        self.extractor = extractor

    # ------------------------------------------------------------------
    # packages.json
    # ------------------------------------------------------------------

    def build_packages_document(self, repository: RepositoryContext, names: Iterable[str]) -> JsonDocument:
        """
        Build a packages.json for the given provider names.

        Names are deduplicated keeping first-seen order. Every provider gets a
        null sha256 so clients always fetch the provider file.
        """
        return {
            PROVIDERS_URL: repository.url + PROVIDER_URL_TEMPLATE,
            PROVIDERS: {name: {SHA256: None} for name in dict.fromkeys(names)},
        }

    def build_packages_from_list(self, repository: RepositoryContext, list_document: JsonDocument) -> JsonDocument:
        """
        Build a packages.json from a remote packages/list.json document.
        """
        names = expect_sequence(list_document.get(PACKAGE_NAMES), PACKAGE_NAMES)
        return self.build_packages_document(
            repository,
            [expect_string(name, f"{PACKAGE_NAMES}[{i}]") for i, name in enumerate(names)],
        )

    def build_packages_from_components(
        self, repository: RepositoryContext, components: Iterable[Component]
    ) -> JsonDocument:
        return self.build_packages_document(repository, (component.name for component in components))

    def merge_packages_documents(self, repository: RepositoryContext, documents: Iterable[JsonDocument]) -> JsonDocument:
        """
        Merge packages.json documents into one holding the union of providers.

        The providers-url is always regenerated for this repository.
        """
        names: List[str] = []
        for document in documents:
            providers = get_mapping(document, PROVIDERS, "")
            if providers:
                names.extend(providers.keys())
        return self.build_packages_document(repository, names)

    # ------------------------------------------------------------------
    # Provider documents
    # ------------------------------------------------------------------

    def rewrite_provider_document(self, repository: RepositoryContext, document: JsonDocument) -> JsonDocument:
        """
        Rewrite a provider document in place so source entries are removed and
        zip dist entries point back at this repository.

        Dists of any other type are left as they are.
        """
        packages = get_mapping(document, PACKAGES, "")
        if packages is None:
            return document

        for package_name, versions in packages.items():
            versions = expect_mapping(versions, f"{PACKAGES}.{package_name}")
            for version, version_info in versions.items():
                path = f"{PACKAGES}.{package_name}.{version}"
                version_info = expect_mapping(version_info, path)
                # Sources are never exposed to clients.
                version_info.pop(SOURCE, None)

                dist_info = get_mapping(version_info, DIST, path)
                if dist_info is not None and dist_info.get(TYPE) == ZIP_TYPE:
                    version_info[DIST] = self.build_dist_info(
                        repository,
                        package_name,
                        version,
                        get_optional_string(dist_info, REFERENCE, f"{path}.{DIST}"),
                        get_optional_string(dist_info, SHASUM, f"{path}.{DIST}"),
                        ZIP_TYPE,
                    )
        return document

    def rewrite_provider_payload(self, repository: RepositoryContext, payload: bytes) -> bytes:
        return serialize(self.rewrite_provider_document(repository, parse(payload)))

    def build_provider_document(
        self,
        repository: RepositoryContext,
        components: Iterable[Component],
        store: ComponentStore,
    ) -> JsonDocument:
        """
        Build a provider document for hosted components.

        Each version's record carries the metadata from the composer.json inside
        its archive, a timestamp derived from the component's last update, and
        the archive checksum as both reference and shasum. A component whose
        archive cannot be read aborts the whole document.
        """
        packages: Dict[str, Dict[str, Any]] = {}
        for component in components:
            content, checksum = store.fetch_blob(component.blob_ref)
            try:
                composer_json = self.extractor.extract(content)
            except ExtractionFailure:
                logger.error(
                    f"Cannot build provider for {repository.name}: composer.json unreadable in "
                    f"{component.name} {component.version}"
                )
                raise

            name = component.name
            time = format_time(component.last_updated)
            packages.setdefault(name, {})[component.version] = self.build_package_info(
                repository, name, component.version, checksum, checksum, ZIP_TYPE, time, composer_json
            )

        return {PACKAGES: packages}

    def merge_provider_documents(
        self,
        repository: RepositoryContext,
        documents: Iterable[JsonDocument],
        now: datetime,
    ) -> JsonDocument:
        """
        Merge provider documents, keeping the first occurrence of each version.

        Versions without a dist are skipped. Versions without a time get ``now``.
        """
        current_time = format_time(now)

        packages: Dict[str, Dict[str, Any]] = {}
        for document in documents:
            packages_map = get_mapping(document, PACKAGES, "")
            if packages_map is None:
                continue

            for package_name, versions in packages_map.items():
                versions = expect_mapping(versions, f"{PACKAGES}.{package_name}")
                for version, version_info in versions.items():
                    path = f"{PACKAGES}.{package_name}.{version}"
                    version_info = expect_mapping(version_info, path)
                    dist_info = get_mapping(version_info, DIST, path)
                    if dist_info is None:
                        continue

                    packages_for_name = packages.setdefault(package_name, {})
                    if version in packages_for_name:
                        continue

                    time = get_optional_string(version_info, TIME, path) or current_time
                    packages_for_name[version] = self.build_package_info(
                        repository,
                        package_name,
                        version,
                        get_optional_string(dist_info, REFERENCE, f"{path}.{DIST}"),
                        get_optional_string(dist_info, SHASUM, f"{path}.{DIST}"),
                        get_optional_string(dist_info, TYPE, f"{path}.{DIST}"),
                        time,
                        version_info,
                    )

        return {PACKAGES: packages}

    # ------------------------------------------------------------------
    # Record builders
    # ------------------------------------------------------------------

    def build_package_info(
        self,
        repository: RepositoryContext,
        package_name: str,
        version: str,
        reference: Optional[str],
        shasum: Optional[str],
        dist_type: Optional[str],
        time: str,
        source_record: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        package_info: Dict[str, Any] = {
            NAME: package_name,
            VERSION: version,
            DIST: self.build_dist_info(repository, package_name, version, reference, shasum, dist_type),
            TIME: time,
            UID: compute_uid(package_name, version, time),
        }
        if source_record:
            copy_pass_through_fields(source_record, package_info)
        return package_info

    def build_dist_info(
        self,
        repository: RepositoryContext,
        package_name: str,
        version: str,
        reference: Optional[str],
        shasum: Optional[str],
        dist_type: Optional[str],
    ) -> Dict[str, Any]:
        vendor, project = split_package_name(package_name)
        return {
            URL: f"{repository.url}/{zipball_path(vendor, project, version)}",
            TYPE: dist_type,
            REFERENCE: reference,
            SHASUM: shasum,
        }

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_dist_url(self, document: JsonDocument, vendor: str, project: str, version: str) -> str:
        """
        Return the dist URL for one vendor/project version of a provider document.
        """
        name = f"{vendor}/{project}"
        packages = get_mapping(document, PACKAGES, "")
        if packages is None:
            raise NotFound("Provider document has no packages")

        versions = get_mapping(packages, name, PACKAGES)
        if versions is None:
            raise NotFound(f"Package {name} not found")

        version_path = f"{PACKAGES}.{name}"
        version_info = get_mapping(versions, version, version_path)
        if version_info is None:
            raise NotFound(f"Version {version} of {name} not found")

        dist_path = f"{version_path}.{version}"
        dist_info = get_mapping(version_info, DIST, dist_path)
        if dist_info is None:
            raise NotFound(f"No dist for {name} {version}")

        url = get_optional_string(dist_info, URL, f"{dist_path}.{DIST}")
        if url is None:
            raise NotFound(f"No dist url for {name} {version}")
        return url
