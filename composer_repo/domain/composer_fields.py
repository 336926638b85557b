from enum import Enum
from typing import FrozenSet


class ComposerField(str, Enum):
    """
    Field names known to the Composer repository document format.
    """

    AUTOLOAD = "autoload"
    AUTHORS = "authors"
    BIN = "bin"
    CONFLICT = "conflict"
    DESCRIPTION = "description"
    DIST = "dist"
    EXTRA = "extra"
    KEYWORDS = "keywords"
    LICENSE = "license"
    NAME = "name"
    PACKAGES = "packages"
    PACKAGE_NAMES = "packageNames"
    PROVIDE = "provide"
    PROVIDERS = "providers"
    PROVIDERS_URL = "providers-url"
    REFERENCE = "reference"
    REQUIRE = "require"
    REQUIRE_DEV = "require-dev"
    SHA256 = "sha256"
    SHASUM = "shasum"
    SOURCE = "source"
    SUGGEST = "suggest"
    TARGET_DIR = "target-dir"
    TIME = "time"
    TYPE = "type"
    UID = "uid"
    URL = "url"
    VERSION = "version"


# Manifest fields copied verbatim from a source record into a release record.
# name/version/dist/time/uid are always generated, source is never exposed.
PASS_THROUGH_FIELDS: FrozenSet[ComposerField] = frozenset({
    ComposerField.AUTOLOAD,
    ComposerField.AUTHORS,
    ComposerField.BIN,
    ComposerField.CONFLICT,
    ComposerField.DESCRIPTION,
    ComposerField.EXTRA,
    ComposerField.KEYWORDS,
    ComposerField.LICENSE,
    ComposerField.PROVIDE,
    ComposerField.REQUIRE,
    ComposerField.REQUIRE_DEV,
    ComposerField.SUGGEST,
    ComposerField.TARGET_DIR,
    ComposerField.TYPE,
})

PASS_THROUGH_KEYS: FrozenSet[str] = frozenset(field.value for field in PASS_THROUGH_FIELDS)

ZIP_TYPE = "zip"
