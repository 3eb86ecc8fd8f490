class ImgSearchError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ImgSearchError):
    """Requested resource does not exist."""


class ForbiddenError(ImgSearchError):
    """Caller does not own (and may not see) the resource."""


class ModelUnavailableError(ImgSearchError):
    """Embedding model is not loaded or not ready."""


class InvalidInputError(ImgSearchError):
    """Input cannot be embedded (undecodable image, empty text)."""


class EmbeddingFailedError(ImgSearchError):
    """Model call failed for one specific input."""


class IndexUnavailableError(ImgSearchError):
    """Vector index call failed or timed out."""


class ConfigurationError(ImgSearchError):
    """System misconfiguration; never retried automatically."""


class InvalidTransitionError(ImgSearchError):
    """Embedding state change not allowed from the record's current state."""
