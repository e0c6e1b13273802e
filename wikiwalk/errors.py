from dataclasses import dataclass


class WikiWalkError(Exception):
    """Base class for errors surfaced to the user through the feedback channel."""

    severity = "error"


class FetchError(WikiWalkError):
    """The Link Source failed (transport error, bad status, API error payload)."""


class NoSeedError(WikiWalkError):
    """A step was requested while no walk is active."""


class NoLinksAvailable(WikiWalkError):
    """Backtracking exhausted the walk stack. Expected, not a fault."""

    severity = "warning"


@dataclass(frozen=True)
class Feedback:
    message: str
    severity: str = "success"

    @classmethod
    def from_error(cls, error: WikiWalkError) -> "Feedback":
        return cls(str(error), error.severity)
