"""Domain exceptions."""


class TradetalkError(Exception):
    """Base exception for domain errors."""


class ContextNotFoundError(TradetalkError):
    """No conversation context exists for the identity."""

    def __init__(self, identity: str) -> None:
        super().__init__(f"No conversation context for identity: {identity}")
        self.identity = identity


class BusinessActionError(TradetalkError):
    """A business action could not be carried out."""


class TemplateRenderError(TradetalkError):
    """A reply template is missing or failed to render."""
