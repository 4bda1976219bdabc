from fastapi import status

class BaseAppException(Exception):
    def __init__(self, code: str, message: str, http_status: int):
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)

class NotFoundError(BaseAppException):
    def __init__(self, code: str, message: str):
        super().__init__(code, message, status.HTTP_404_NOT_FOUND)

class ConflictError(BaseAppException):
    def __init__(self, code: str, message: str):
        super().__init__(code, message, status.HTTP_409_CONFLICT)

class ValidationAppError(BaseAppException):
    def __init__(self, code: str, message: str):
        super().__init__(code, message, status.HTTP_400_BAD_REQUEST)


# --- Calendar integration taxonomy ---

class AuthNotConnected(BaseAppException):
    """No stored credential for the user."""
    def __init__(self, message: str = "Google Calendar not connected"):
        super().__init__("CALENDAR_NOT_CONNECTED", message, status.HTTP_400_BAD_REQUEST)

class AuthExpired(BaseAppException):
    """Refresh grant failed. The user has to reconnect; never retried automatically."""
    def __init__(self, message: str = "Failed to refresh Google token. Please reconnect."):
        super().__init__("CALENDAR_AUTH_EXPIRED", message, status.HTTP_401_UNAUTHORIZED)

class ProviderError(BaseAppException):
    """Upstream calendar failure carrying the provider's HTTP status."""
    def __init__(self, provider_status: int, message: str = "calendar provider error"):
        self.provider_status = provider_status
        super().__init__("PROVIDER_ERROR", message, status.HTTP_502_BAD_GATEWAY)

    @property
    def retryable(self) -> bool:
        return self.provider_status == 429 or self.provider_status >= 500

class NotFoundIgnorable(ProviderError):
    """404/410 on delete: the external event is already gone."""
    def __init__(self, provider_status: int = 404, message: str = "external event already gone"):
        super().__init__(provider_status, message)

class LeaseBusy(ConflictError):
    def __init__(self, scope: str):
        super().__init__("SYNC_IN_PROGRESS", f"another {scope} operation is running for this user")
