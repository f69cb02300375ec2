"""
Exception hierarchy for the chat client.

Parse problems inside structured blocks are never raised; they degrade to
plain text in the scanner. Everything here is raised at a seam where the
caller decides how to surface it.
"""


class VizchatError(Exception):
    """Base class for all client errors."""


class ConfigError(VizchatError):
    """Invalid or unreadable configuration."""


class StreamTransportError(VizchatError):
    """The model stream failed (network, HTTP status, or backend error event)."""


class MessageFinalizedError(VizchatError):
    """Attempt to mutate a message after its stream completed."""


class SmilesError(VizchatError):
    """A SMILES string could not be parsed."""

    def __init__(self, message: str, position: int = -1):
        super().__init__(message)
        self.position = position


class StructureLookupError(VizchatError):
    """A macromolecule identifier could not be resolved."""


class RendererError(VizchatError):
    """A visualization payload is well-formed JSON but unusable for its kind."""
