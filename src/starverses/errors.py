class StarversesError(Exception):
    """Base class for starverses failures."""


class DataUnavailable(StarversesError):
    """Tabulated track data is missing or structurally unparsable."""


class IoFailure(StarversesError, OSError):
    """Filesystem or network failure while fetching or reading track data."""


class ConcurrencyPoisoned(StarversesError):
    """The shared catalog was left half-built by an interrupted construction."""
