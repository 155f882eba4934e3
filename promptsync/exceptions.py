"""Exception types raised by promptsync services."""


class PromptSyncError(Exception):
    """Base class for all promptsync errors."""


class ResolutionServiceError(PromptSyncError):
    """The external resolution service failed (network, HTTP status or unparsable content)."""


class PreTranslationError(PromptSyncError):
    """The pre-translation service failed or reported an API error."""


class DictionaryStorageError(PromptSyncError):
    """Learned dictionary entries could not be read from or written to disk."""
