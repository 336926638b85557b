"""
Read composer.json out of a package archive.
"""
from __future__ import annotations

import io
import json
import logging
import zipfile
from typing import Any, Dict, Optional

from composer_repo.domain.exceptions import ExtractionFailure

logger = logging.getLogger(__name__)

COMPOSER_JSON = "composer.json"


class ComposerJsonExtractor:
    """
    Extracts the composer.json manifest from a zip archive.

    The manifest may sit at the archive root or inside a single top-level
    directory (the layout of GitHub zipballs). The shallowest match wins.
    """

    def extract(self, content: bytes) -> Dict[str, Any]:
        try:
            with zipfile.ZipFile(io.BytesIO(content), "r") as zip_ref:
                entry = self._find_manifest(zip_ref)
                if entry is None:
                    raise ExtractionFailure(f"No {COMPOSER_JSON} found in archive")
                raw = zip_ref.read(entry)
        except zipfile.BadZipFile as e:
            raise ExtractionFailure(f"Archive is not a valid zip file: {e}") from e

        try:
            manifest = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ExtractionFailure(f"{entry} is not valid JSON: {e}") from e

        if not isinstance(manifest, dict):
            raise ExtractionFailure(f"{entry} does not contain a JSON object")

        logger.debug(f"Extracted {entry} from archive")
        return manifest

    def _find_manifest(self, zip_ref: zipfile.ZipFile) -> Optional[str]:
        candidates = []
        for name in zip_ref.namelist():
            parts = name.split("/")
            if parts[-1] == COMPOSER_JSON and len(parts) <= 2:
                candidates.append(name)
        if not candidates:
            return None
        return min(candidates, key=lambda n: n.count("/"))
