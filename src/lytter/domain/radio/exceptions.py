"""Radio-specific exceptions for error handling."""


class RadioError(Exception):
    """Base exception for radio operations."""

    pass


class NetworkError(RadioError):
    """Base exception for failed schedule or track fetches."""

    description = "Network error"

    def __init__(self, message: str = None):
        super().__init__(message or self.description)


class InvalidResponseError(NetworkError):
    """Raised when the server answers with anything but a 200."""

    description = "Invalid response from server"

    def __init__(self, message: str = None, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class ServerError(InvalidResponseError):
    """Raised when the server answers with a 5xx status."""

    description = "Server error"


class DecodingError(NetworkError):
    """Raised when a response body cannot be decoded."""

    description = "Failed to decode response"


class InvalidURLError(NetworkError):
    """Raised when a request URL cannot be built or is rejected."""

    description = "Invalid URL"


class NoConnectionError(NetworkError):
    """Raised when the server cannot be reached."""

    description = "No internet connection"


class RequestTimeoutError(NetworkError):
    """Raised when a request or its whole response takes too long."""

    description = "The request timed out"


class StreamResolutionError(RadioError):
    """Raised when no playable stream URL exists for a channel."""

    def __init__(self, channel_title: str):
        self.channel_title = channel_title
        super().__init__(f"No stream URL available for {channel_title}")
