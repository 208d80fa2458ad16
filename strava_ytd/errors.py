from __future__ import annotations


class StravaYtdError(RuntimeError):
    pass


class StorageError(StravaYtdError):
    pass


class AuthorizationDenied(StravaYtdError):
    pass


class AuthorizationFailed(StravaYtdError):
    pass


class ApiError(StravaYtdError):
    def __init__(self, status_code: int | None, message: str, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenRefreshFailed(ApiError):
    """Refresh grant rejected; callers may fall back to interactive authorization."""


class TokenExchangeFatal(ApiError):
    """Authorization-code grant rejected, usually a bad client id/secret."""


class GistError(StravaYtdError):
    pass


class HistoryError(StravaYtdError):
    pass
