from enum import Enum
from typing import Optional


class MergeguardError(Exception):
    pass


class UpstreamError(MergeguardError):
    """Raised when a call to the GitHub API fails or returns garbage."""

    status_code: Optional[int]

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(UpstreamError):
    pass


class VerificationFailure(Enum):
    missing_header = "Missing X-Hub-Signature-256 header"
    malformed_header = "Invalid X-Hub-Signature-256 header"
    signature_mismatch = "Invalid webhook signature"


class VerificationError(MergeguardError):
    reason: VerificationFailure

    def __init__(self, reason: VerificationFailure):
        super().__init__(reason.value)
        self.reason = reason


class PayloadError(MergeguardError):
    pass


class ConfigError(MergeguardError):
    pass
