import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from composer_repo.domain.composer_paths import zipball_filename
from composer_repo.domain.exceptions import MalformedName, NotFound
from composer_repo.domain.models import Component, RepositoryConfig
from composer_repo.storage.db_manager import ComponentStore

logger = logging.getLogger(__name__)

ComponentKey = Tuple[str, str, str, str]


class JsonComponentStore(ComponentStore):
    """
    Component store backed by JSON files and archives under the data directory.

    Layout: <DATA_DIR>/hosted/<repository>/<vendor>/<project>/<version>/
    holding component.json and the archive itself.
    """

    def __init__(self, data_dir: Path):
        self._data_dir = data_dir
        self._components: Dict[ComponentKey, Component] = {}
        self._repository_config: Optional[RepositoryConfig] = None

        # Ensure data directory exists
        if not self._data_dir.exists():
            self._data_dir.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        self._load_repository_config()
        self._build_index_from_disk()

    def get_repository_config(self) -> RepositoryConfig:
        if self._repository_config is None:
            return self._load_repository_config()
        return self._repository_config

    def save_repository_config(self, config: RepositoryConfig) -> None:
        self._repository_config = config
        config_path = self._data_dir / "repository.json"
        config_path.write_text(config.model_dump_json(indent=2), encoding="utf-8")

    def list_components(
        self,
        repository: str,
        vendor: Optional[str] = None,
        project: Optional[str] = None,
    ) -> List[Component]:
        return [
            c for c in self._components.values()
            if c.repository == repository
            and (vendor is None or c.vendor == vendor)
            and (project is None or c.project == project)
        ]

    def get_component(self, repository: str, vendor: str, project: str, version: str) -> Optional[Component]:
        return self._components.get((repository, vendor, project, version))

    def add_component(self, repository: str, vendor: str, project: str, version: str, content: bytes) -> Component:
        hosted_dir = (self._data_dir / "hosted").resolve()
        version_dir = self._data_dir / "hosted" / repository / vendor / project / version
        if hosted_dir not in version_dir.resolve().parents:
            raise MalformedName(f"{repository}/{vendor}/{project}/{version} escapes the hosted storage directory")
        version_dir.mkdir(parents=True, exist_ok=True)

        archive_path = version_dir / zipball_filename(vendor, project, version)
        archive_path.write_bytes(content)

        component = Component(
            repository=repository,
            vendor=vendor,
            project=project,
            version=version,
            blob_ref=str(archive_path.relative_to(self._data_dir)),
            checksum=hashlib.sha1(content).hexdigest(),
            last_updated=datetime.now(timezone.utc),
        )
        (version_dir / "component.json").write_text(component.model_dump_json(indent=2), encoding="utf-8")

        key = (repository, vendor, project, version)
        # Re-uploads move the version to the end of the upload order.
        self._components.pop(key, None)
        self._components[key] = component
        logger.info(f"Stored {vendor}/{project} {version} in {repository} ({component.checksum})")
        return component

    def fetch_blob(self, blob_ref: str) -> Tuple[bytes, str]:
        path = self._data_dir / blob_ref
        if not path.is_file():
            raise NotFound(f"Blob {blob_ref} not found")
        content = path.read_bytes()
        return content, hashlib.sha1(content).hexdigest()

    def get_file_path(self, component: Component) -> Path:
        return self._data_dir / component.blob_ref

    def _load_repository_config(self) -> RepositoryConfig:
        path = self._data_dir / "repository.json"
        if path.exists():
            try:
                config = RepositoryConfig.model_validate_json(path.read_text(encoding="utf-8"))
            except ValidationError as e:
                logger.warning(f"Invalid {path}, falling back to defaults: {e}")
                config = RepositoryConfig()
        else:
            config = RepositoryConfig()
            path.write_text(config.model_dump_json(indent=2), encoding="utf-8")

        self._repository_config = config
        return config

    def _build_index_from_disk(self) -> None:
        components: List[Component] = []

        hosted_dir = self._data_dir / "hosted"
        if hosted_dir.exists():
            for component_json in hosted_dir.glob("*/*/*/*/component.json"):
                try:
                    components.append(Component.model_validate_json(component_json.read_text(encoding="utf-8")))
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable component {component_json}: {e}")

        components.sort(key=lambda c: c.last_updated)
        self._components = {(c.repository, c.vendor, c.project, c.version): c for c in components}
        logger.info(f"Loaded {len(self._components)} hosted components from {hosted_dir}")
