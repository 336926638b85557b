"""Common test fixtures for the Composer repository."""

import io
import json
import zipfile

import pytest

from composer_repo.domain.composer_json import ComposerJsonProcessor
from composer_repo.domain.models import RepositoryContext
from composer_repo.services.composer_extractor import ComposerJsonExtractor
from composer_repo.storage.json_db_manager import JsonComponentStore

BASE_URL = "http://localhost:8000/repository/composer-proxy"


def make_zip(manifest=None, prefix="", extra_files=None) -> bytes:
    """Build an in-memory zip archive, optionally holding a composer.json."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if manifest is not None:
            zf.writestr(f"{prefix}composer.json", json.dumps(manifest))
        for name, content in (extra_files or {}).items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def zip_factory():
    return make_zip


@pytest.fixture
def repository() -> RepositoryContext:
    return RepositoryContext(name="composer-proxy", url=BASE_URL)


@pytest.fixture
def processor() -> ComposerJsonProcessor:
    return ComposerJsonProcessor(ComposerJsonExtractor())


@pytest.fixture
def store(tmp_path) -> JsonComponentStore:
    """Component store rooted at a temporary data directory."""
    component_store = JsonComponentStore(tmp_path / "data")
    component_store.initialize()
    return component_store
