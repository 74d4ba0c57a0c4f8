"""Error taxonomy shared by the fetcher, draft requester and history store."""


class BotError(Exception):
    """Base class for recoverable bot errors."""


class FetchError(BotError):
    """Market data could not be retrieved or was missing a required field."""


class GenerationError(BotError):
    """The draft service failed, returned no text, or has no credential."""


class PersistenceError(BotError):
    """The history store could not be read or written."""
