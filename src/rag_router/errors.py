"""Exception hierarchy for the routing engine."""

from __future__ import annotations


class RagRouterError(Exception):
    """Base class for errors raised by the routing engine."""


class LanguageModelError(RagRouterError):
    """A language-model call failed or returned an unusable response."""


class StructuredOutputError(LanguageModelError):
    """A structured (JSON) response could not be parsed into the mandated shape."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class RoutingError(RagRouterError):
    """The classifier produced no usable routing decision."""


class GraphDatabaseUnavailable(RagRouterError):
    """The graph database handle is in the disconnected state."""
