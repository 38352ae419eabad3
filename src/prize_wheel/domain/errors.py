"""Error taxonomy for spin coordination."""


class PrizeWheelError(Exception):
    """Base class for expected prize wheel failures."""

    code = "internal_error"


class InvalidInputError(PrizeWheelError):
    """Raised when a request carries malformed or out-of-range data."""

    code = "invalid_input"


class SessionNotFoundError(PrizeWheelError):
    """Raised when a session id is unknown or has expired out of the store."""

    code = "not_found"


class SessionAlreadyResolvedError(PrizeWheelError):
    """Raised when a decision targets a session that is no longer waiting."""

    code = "already_resolved"


class SpinInProgressError(PrizeWheelError):
    """Raised when a client requests a spin while another one is running."""

    code = "spin_in_progress"


class TransportError(PrizeWheelError):
    """Raised when the messaging transport refuses a delivery."""

    code = "transport_failure"


class StoreError(PrizeWheelError):
    """Raised when the key-value store is unreachable or returns bad data."""

    code = "store_failure"
