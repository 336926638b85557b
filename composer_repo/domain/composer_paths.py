"""
Relative paths served by a Composer repository.
"""
from typing import Tuple

from composer_repo.domain.exceptions import MalformedName

PACKAGES_JSON_PATH = "packages.json"
LIST_JSON_PATH = "packages/list.json"
PROVIDER_URL_TEMPLATE = "/p/%package%.json"


def split_package_name(package_name: str) -> Tuple[str, str]:
    """
    Split 'vendor/project' into its two segments.
    """
    parts = package_name.split("/")
    if len(parts) != 2 or not all(_is_path_segment(part) for part in parts):
        raise MalformedName(f"Package name '{package_name}' is not of the form 'vendor/project'")
    return parts[0], parts[1]


def validate_version(version: str) -> str:
    if not _is_path_segment(version):
        raise MalformedName(f"Version '{version}' cannot be used as a path segment")
    return version


def _is_path_segment(value: str) -> bool:
    return bool(value) and value not in (".", "..") and "/" not in value and "\\" not in value


def zipball_path(vendor: str, project: str, version: str) -> str:
    return f"{vendor}/{project}/{version}/{zipball_filename(vendor, project, version)}"


def zipball_filename(vendor: str, project: str, version: str) -> str:
    return f"{vendor}-{project}-{version}.zip"


def provider_path(vendor: str, project: str) -> str:
    return f"p/{vendor}/{project}.json"
