"""Error taxonomy for Headroom.

SECURITY MODEL:
- Messages are shown to the user as-is and therefore never contain
  tokens, credentials, or raw response bodies.
"""


class HeadroomError(Exception):
    """Base class for every failure captured into UsageState.error."""

    default_message = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class CredentialMissing(HeadroomError):
    default_message = "No OAuth token — is Claude Code installed?"


class CredentialInvalid(HeadroomError):
    default_message = "credentials invalid"


class FetchError(HeadroomError):
    """Raised by UsageClient.fetch."""

    default_message = "Fetch failed"


class Unauthorized(FetchError):
    default_message = "Unauthorized"


class NetworkError(FetchError):
    default_message = "Connection failed"


class MalformedResponse(FetchError):
    default_message = "Unexpected response from usage API"


class ConfigurationError(HeadroomError, ValueError):
    """Invalid limits or thresholds. Should never happen with a sane upstream."""

    default_message = "Invalid usage configuration"
