"""Build error taxonomy."""

from __future__ import annotations


class SitePackError(Exception):
    """Base class for every fatal build error."""


class ManifestError(SitePackError):
    """Raised when the project descriptor is missing or malformed."""


class FilesystemError(SitePackError):
    """Raised when resetting the target directory fails for a reason other than absence."""


class TemplateError(SitePackError):
    """Raised when the HTML template lacks a required tagged node."""


class BundleError(SitePackError):
    """Raised when a script or style engine fails to produce a bundle."""


class PackagingError(SitePackError):
    """Raised when offline artifacts cannot be generated or verified."""
