"""Directory-specific exceptions for error handling."""


class DirectoryError(Exception):
    """Base exception for all directory operations."""
    pass


class DirectoryAPIError(DirectoryError):
    """HTTP error from the directory REST API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class UserCreationError(DirectoryError):
    """User creation rejected (duplicate, invalid attribute, quota)."""
    pass


class MembershipError(DirectoryError):
    """Adding a user to a group failed."""
    pass


class CredentialIssuanceError(DirectoryError):
    """Temporary Access Pass could not be issued."""
    pass
