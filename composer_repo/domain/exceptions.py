"""
Exception hierarchy for the Composer repository.

All errors raised by the document engine and the services around it inherit
from ComposerRepositoryError so the HTTP layer can map them in one place.
"""


class ComposerRepositoryError(Exception):
    """Base exception for all Composer repository errors."""


class ParseError(ComposerRepositoryError):
    """Raised when a payload is not well-formed JSON or its root is not an object."""


class TypeMismatch(ComposerRepositoryError):
    """Raised when a known field holds a different JSON shape than expected."""


class MalformedName(ComposerRepositoryError):
    """Raised when a package name is not of the form 'vendor/project'."""


class ExtractionFailure(ComposerRepositoryError):
    """Raised when composer.json cannot be read out of an archive."""


class NotFound(ComposerRepositoryError):
    """Raised when a looked-up package, version or dist entry does not exist."""


class RepositoryNotFound(NotFound):
    """Raised when no repository with the requested name is configured."""


class UnsupportedOperation(ComposerRepositoryError):
    """Raised when a repository's mode does not allow the requested operation."""


class UpstreamError(ComposerRepositoryError):
    """Raised when a remote repository answers with an error or cannot be reached."""
