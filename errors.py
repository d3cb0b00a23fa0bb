from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator


class ConfigurationError(ValueError):
    """Raised at startup when required settings are missing."""


class ExternalServiceError(RuntimeError):
    """
    A search, page fetch, embedding or completion call failed, timed out,
    or returned something we could not use. Ends the current turn only.
    """


@contextmanager
def external_call(what: str) -> Iterator[None]:
    """
    Re-raise anything coming out of an external capability as ExternalServiceError.
    """
    try:
        yield
    except ExternalServiceError:
        raise
    except Exception as exc:
        raise ExternalServiceError(f"{what} failed: {exc}") from exc
