"""
Exception types raised by the manifest processor and its definition sources.
"""


class ManifestError(RuntimeError):
    """Fatal manifest initialization failure (metadata, download or processing)."""


class ManifestLanguageUnavailable(ManifestError):
    """The manifest does not publish content for the requested language."""

    def __init__(self, language: str, available: list[str] | None = None):
        self.language = language
        self.available = sorted(available or [])
        super().__init__(
            f"Manifest data not available for language: {language} "
            f"(available: {', '.join(self.available) or 'none'})"
        )


class DefinitionSourceError(RuntimeError):
    """A remote definition source could not satisfy a request."""


class BungieAPIError(DefinitionSourceError):
    """Bungie API returned a non-success envelope."""

    def __init__(self, message: str, error_code: int | None = None):
        self.error_code = error_code
        super().__init__(message)


class ItemDefinitionUnavailable(LookupError):
    """The base inventory item definition for an analysis could not be resolved."""
