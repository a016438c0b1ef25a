"""
passkeysig - Deterministic Ethereum signing keys from passkey PRF output.

This library derives a secp256k1 signing key on demand from a hardware-gated
passkey secret (released only after biometric verification) and a short
user-memorized PIN. The key is never stored: every device that shares the
synchronized passkey and knows the PIN derives the identical key and
therefore the identical signatures.

The library is platform-agnostic: the biometric authenticator is supplied as
a CredentialCapability. An EmulatedAuthenticator is included for development
and tests.

Quick Start:
    >>> from passkeysig import PasskeySigner, EmulatedAuthenticator, verify
    >>>
    >>> signer = PasskeySigner(EmulatedAuthenticator())
    >>> signer.binding.connect_wallet(wallet_address)
    >>>
    >>> # Prompts for biometrics, derives and caches the account
    >>> account = signer.authenticate("135790")
    >>>
    >>> # Signs from memory, no further prompt
    >>> signature = signer.sign("Hello, World!")
    >>> verify(account.address, "Hello, World!", signature)
    True

See Also:
    - api.py: PasskeySigner and module-level functions
    - crypto.py: Key derivation and ECDSA utilities
    - gateway.py: Probe-then-create credential protocol
    - session.py: Session state machine
    - binding.py: Active address tracking
    - exceptions.py: Custom exception types
"""

__version__ = "0.1.0"
__author__ = "passkeysig Contributors"

# Public API - main functions
from .api import derive_account, sign, verify, PasskeySigner

# Components
from .binding import AccountBinding, AddressChange, AddressMode, AddressSource, validate_address
from .config import Persistence, SignerConfig
from .crypto import PrivateKey, SigningAccount, derive_private_key, digest_pin, is_valid_private_key
from .emulator import EmulatedAuthenticator
from .gateway import CapabilityResult, CredentialCapability, CredentialGateway, CredentialResult, ProbeOutcome
from .session import Authenticated, SigningSessionManager, Unauthenticated
from .storage import CredentialRecord, CredentialRegistry, JsonFileStore, MemoryStore, NullStore

# Exceptions for error handling
from .exceptions import (
    PasskeySigError,
    InvalidPinError,
    UserCancelledError,
    CapabilityUnavailableError,
    HardwareSecretMissingError,
    NoCredentialError,
    NotAuthenticatedError,
    DerivationUnreachableError,
    UnexpectedAccountMismatchError,
    AuthenticationInProgressError,
    NoActiveAddressError,
    InvalidAddressError,
    InvalidSignatureError,
    StorageError,
)

__all__ = [
    # Version
    "__version__",
    # Main API
    "derive_account",
    "sign",
    "verify",
    "PasskeySigner",
    # Components
    "AccountBinding",
    "AddressChange",
    "AddressMode",
    "AddressSource",
    "validate_address",
    "Persistence",
    "SignerConfig",
    "PrivateKey",
    "SigningAccount",
    "derive_private_key",
    "digest_pin",
    "is_valid_private_key",
    "EmulatedAuthenticator",
    "CapabilityResult",
    "CredentialCapability",
    "CredentialGateway",
    "CredentialResult",
    "ProbeOutcome",
    "Authenticated",
    "SigningSessionManager",
    "Unauthenticated",
    "CredentialRecord",
    "CredentialRegistry",
    "JsonFileStore",
    "MemoryStore",
    "NullStore",
    # Exceptions
    "PasskeySigError",
    "InvalidPinError",
    "UserCancelledError",
    "CapabilityUnavailableError",
    "HardwareSecretMissingError",
    "NoCredentialError",
    "NotAuthenticatedError",
    "DerivationUnreachableError",
    "UnexpectedAccountMismatchError",
    "AuthenticationInProgressError",
    "NoActiveAddressError",
    "InvalidAddressError",
    "InvalidSignatureError",
    "StorageError",
]
