"""
Custom exceptions for the passkeysig library.

This module defines specific exceptions that can be raised while deriving
signing keys from passkey PRF output, enabling callers to tell transient
failures (cancelled prompt, wrong PIN format) apart from fatal ones
(the device cannot take part in deterministic derivation at all).

Errors marked ``fatal`` disable the authenticate path for the session that
observed them.
"""


class PasskeySigError(Exception):
    """Base exception for all passkeysig errors."""

    fatal = False

    def __init__(self, message: str = "passkeysig error"):
        self.message = message
        super().__init__(self.message)


class InvalidPinError(PasskeySigError):
    """
    Raised when a PIN does not have the required format.

    Detected locally before any hardware prompt is shown, so the user can
    simply re-enter the PIN.
    """

    def __init__(self, message: str = "Invalid PIN: expected a numeric PIN of the configured length"):
        super().__init__(message)


class UserCancelledError(PasskeySigError):
    """
    Raised when the user declines or times out the biometric prompt.

    Recoverable: a fresh authenticate() call may be issued.
    """

    def __init__(self, message: str = "User cancelled the passkey prompt"):
        super().__init__(message)


class CapabilityUnavailableError(PasskeySigError):
    """
    Raised when the platform lacks a user-verifying authenticator
    with PRF support.
    """

    fatal = True

    def __init__(self, message: str = "Passkey PRF capability is unavailable on this device"):
        super().__init__(message)


class HardwareSecretMissingError(PasskeySigError):
    """
    Raised when the platform accepted the challenge but returned no usable
    PRF secret.

    This means the device cannot participate in deterministic derivation.
    """

    fatal = True

    def __init__(self, message: str = "Platform returned no usable PRF secret"):
        super().__init__(message)


class NoCredentialError(PasskeySigError):
    """Raised when re-authentication finds no credential for this relying party."""

    def __init__(self, message: str = "No passkey credential found"):
        super().__init__(message)


class NotAuthenticatedError(PasskeySigError):
    """Raised when signing is attempted before a successful authenticate()."""

    def __init__(self, message: str = "Not authenticated: call authenticate() first"):
        super().__init__(message)


class DerivationUnreachableError(PasskeySigError):
    """
    Raised when the rejection-sampling loop in key derivation exceeds its
    iteration cap.

    With a sound hash function this cannot happen in practice.
    """

    fatal = True

    def __init__(self, message: str = "Key derivation did not reach a valid private key"):
        super().__init__(message)


class UnexpectedAccountMismatchError(PasskeySigError):
    """
    Raised when the derived signer address differs from the one previously
    recorded for the bound address.

    Either the PIN differs from the one used before, or the platform
    returned a different PRF secret for the same credential.

    Attributes:
        expected: The previously recorded signer address.
        actual: The address derived in this attempt.
    """

    def __init__(self, expected: str, actual: str, message: str | None = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Derived signer {actual} does not match recorded signer {expected}"
        )


class AuthenticationInProgressError(PasskeySigError):
    """Raised when authenticate() is called while another call is in flight."""

    def __init__(self, message: str = "An authentication prompt is already in progress"):
        super().__init__(message)


class NoActiveAddressError(PasskeySigError):
    """Raised when authenticating with an account binding that has no active address."""

    def __init__(self, message: str = "No active address"):
        super().__init__(message)


class InvalidAddressError(PasskeySigError):
    """Raised when manually entered address input fails format or checksum validation."""

    def __init__(self, message: str = "Invalid Ethereum address format"):
        super().__init__(message)


class InvalidSignatureError(PasskeySigError):
    """
    Raised when the provided signature bytes are malformed.

    This is distinct from a verification failure - it indicates
    the signature cannot even be parsed, not that it failed to verify.
    """

    def __init__(self, message: str = "Invalid or malformed signature"):
        super().__init__(message)


class StorageError(PasskeySigError):
    """Raised when the bookkeeping store cannot be read or written."""

    def __init__(self, message: str = "Credential storage failure"):
        super().__init__(message)
