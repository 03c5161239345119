"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Holdings
  3xxx: Market data
  9xxx: System / pipeline

Every concrete error also belongs to one category base (NotFoundError,
EditConflictError, TransportError, InvalidInputError) so pipeline code can
catch a whole class of failures at once.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Categories ---

class NotFoundError(AppError):
    """Asset unknown upstream, or row absent."""


class EditConflictError(AppError):
    """Optimistic version mismatch on update."""

    def __init__(self, owner_id: str, asset_id: str) -> None:
        super().__init__(
            2003,
            f"Edit conflict on holding {asset_id} for owner {owner_id}, please retry",
            409,
        )


class TransportError(AppError):
    """Network or decode failure talking to an external backend."""


class InvalidInputError(AppError):
    """Malformed input: request fields, filters or queue payloads."""


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired access token", 401)


# --- 2xxx: Holdings ---

class HoldingNotFoundError(NotFoundError):
    def __init__(self, owner_id: str, asset_id: str) -> None:
        super().__init__(2001, f"Holding {asset_id} not found for owner {owner_id}", 404)


class HoldingExistsError(AppError):
    def __init__(self, asset_id: str) -> None:
        super().__init__(2002, f"{asset_id} already exists in portfolio", 409)


class InvalidHoldingError(InvalidInputError):
    def __init__(self, detail: str) -> None:
        super().__init__(2004, f"Invalid holding: {detail}", 422)


# --- 3xxx: Market data ---

class AssetNotFoundError(NotFoundError):
    def __init__(self, asset_id: str) -> None:
        super().__init__(3001, f"Asset not found upstream: {asset_id}", 404)


class MarketDataTransportError(TransportError):
    def __init__(self, detail: str) -> None:
        super().__init__(3002, f"Market data unavailable: {detail}", 502)


class InvalidCurrencyError(InvalidInputError):
    def __init__(self, currency: str) -> None:
        super().__init__(
            3003,
            f"Invalid currency '{currency}', use a valid one like 'usd', 'gbp', 'try'",
            422,
        )


# --- 9xxx: System ---

class QueueTransportError(TransportError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Refresh queue unavailable: {detail}", 503)


class InvalidRefreshJobError(InvalidInputError):
    def __init__(self, payload: object) -> None:
        super().__init__(9004, f"Malformed refresh job payload: {payload!r}", 422)
