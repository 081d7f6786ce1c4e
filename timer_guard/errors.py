"""Exception hierarchy for Timer Guard.

Every error carries a user-facing message so the controller can publish
``str(error)`` in its error slot without further translation.
"""

__all__ = [
    "BadStatusCodeError",
    "CannotReachHostError",
    "CannotResolveHostError",
    "ClickUpAPIError",
    "GuardError",
    "InvalidResponseError",
    "MissingTeamIDError",
    "MissingUserIDError",
    "NotificationDeliveryError",
    "TokenStoreError",
    "UnauthorizedError",
]


class GuardError(Exception):
    """Base class for all Timer Guard errors."""


class TokenStoreError(GuardError):
    """Reading or writing the stored ClickUp token failed."""


class NotificationDeliveryError(GuardError):
    """A desktop notification could not be presented."""


class ClickUpAPIError(GuardError):
    """Base class for failures talking to the ClickUp API."""


class InvalidResponseError(ClickUpAPIError):
    def __init__(self) -> None:
        super().__init__("Invalid response from ClickUp API.")


class BadStatusCodeError(ClickUpAPIError):
    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(message or f"ClickUp API returned HTTP {status_code}.")


class UnauthorizedError(BadStatusCodeError):
    def __init__(self, status_code: int = 401) -> None:
        super().__init__(
            status_code,
            f"ClickUp API rejected the token (HTTP {status_code}). "
            "Check the stored API token.",
        )


class MissingTeamIDError(ClickUpAPIError):
    def __init__(self) -> None:
        super().__init__("Could not resolve a ClickUp Team ID.")


class MissingUserIDError(ClickUpAPIError):
    def __init__(self) -> None:
        super().__init__("Could not resolve a ClickUp User ID.")


class CannotResolveHostError(ClickUpAPIError):
    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__(
            f"Could not resolve {host}. Check DNS/VPN/proxy settings and try again."
        )


class CannotReachHostError(ClickUpAPIError):
    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__(
            f"Could not connect to {host}. "
            "Check your network connection and firewall."
        )
