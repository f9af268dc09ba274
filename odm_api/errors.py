"""
Error taxonomy for the chain engine.

Depth truncation is not an error: it is reported through
``ChainResponse.max_depth_reached``.
"""


class ChainError(Exception):
    """Base class for errors raised by the chain engine."""

    status_code = 500


class InvalidRequest(ChainError):
    status_code = 400


class NotFound(ChainError):
    """A brand or beneficiary does not exist in the record store."""

    status_code = 404


class StoreUnavailable(ChainError):
    """A record store call failed, timed out, or the store is not configured."""

    status_code = 500
