from __future__ import annotations


class SpellingTyperError(Exception):
    """Base class for errors raised by the trainer."""


class EmptyWordList(SpellingTyperError):
    """A session was loaded without any words to type."""


class UpstreamFetchFailure(SpellingTyperError):
    """The word service could not provide a word list."""


class MalformedUpstreamPayload(UpstreamFetchFailure):
    """The word service answered, but not with a list of strings."""


class PersistenceFailure(SpellingTyperError):
    """The error store could not be read or written."""
