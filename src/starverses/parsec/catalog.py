"""Process-wide, build-once handle on the track catalog.

The first caller builds the catalog while holding the lock; everybody after
that gets the same read-only instance. A failed build is remembered and the
same exception is raised to every later caller until reset_catalog().
"""

import logging
import threading

from starverses.errors import ConcurrencyPoisoned
from starverses.parsec.data import TrajectoryCatalog

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_catalog = None
_error = None
_poisoned = False


def load_catalog(data_path=None, **build_kwargs):
    """
    Shared TrajectoryCatalog, built on first use
    Args:
        data_path (str or Path):
            Passed to TrajectoryCatalog.build on the first call only
        **build_kwargs:
            metallicity, download, cache, see TrajectoryCatalog.build
    Returns:
        TrajectoryCatalog
    Raises:
        DataUnavailable, IoFailure:
            The (cached) failure of the first build
        ConcurrencyPoisoned:
            A previous build was interrupted half-way
    """
    global _catalog, _error, _poisoned
    with _lock:
        if _poisoned:
            raise ConcurrencyPoisoned(
                "Catalog construction was interrupted, call reset_catalog()"
            )
        if _error is not None:
            raise _error
        if _catalog is None:
            completed = False
            try:
                _catalog = TrajectoryCatalog.build(data_path, **build_kwargs)
                completed = True
            except Exception as err:
                logger.error("Building the track catalog failed: %s", err)
                _error = err
                completed = True
                raise
            finally:
                if not completed:
                    _poisoned = True
        return _catalog


def reset_catalog():
    """Forget the shared catalog, its cached error and any poisoning."""
    global _catalog, _error, _poisoned
    with _lock:
        _catalog = None
        _error = None
        _poisoned = False
