from pathlib import Path
from typing import Optional
import os

from composer_repo.domain.composer_json import ComposerJsonProcessor
from composer_repo.services.composer_extractor import ComposerJsonExtractor
from composer_repo.services.composer_service import ComposerRepositoryService
from composer_repo.services.upstream import UpstreamClient
from composer_repo.storage.db_manager import ComponentStore
from composer_repo.storage.json_db_manager import JsonComponentStore

DATA_ROOT_ENV_VAR = "COMPOSER_REPO_DATA_DIR"
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"

_component_store: Optional[ComponentStore] = None
_repository_service: Optional[ComposerRepositoryService] = None

def get_data_dir() -> Path:
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        d = Path(env_path).expanduser()
    else:
        d = _DEFAULT_DATA_DIR
    d.mkdir(parents=True, exist_ok=True)
    return d

def get_component_store() -> ComponentStore:
    global _component_store
    if _component_store is None:
        _component_store = JsonComponentStore(get_data_dir())
        _component_store.initialize()
    return _component_store

def get_repository_service() -> ComposerRepositoryService:
    global _repository_service
    if _repository_service is None:
        _repository_service = ComposerRepositoryService(
            get_component_store(),
            ComposerJsonProcessor(ComposerJsonExtractor()),
            UpstreamClient(),
        )
    return _repository_service
