"""
Credential gateway over the platform passkey capability.

The platform offers two blocking operations, both taking a PRF evaluation
input and both prompting the user for biometric verification:

- get: assert with any credential registered for the relying party
- create: register a new credential

Neither is idempotent on its own, so find_or_create() layers an explicit
get-or-create protocol on top:

    probe (get)  --FOUND------------------------->  was_existing=True
         |
         +--NOT_FOUND / CANCELLED--> create  ---->  was_existing=False

Probing first means a credential synchronized from another device is
reused instead of duplicated, while first-time setup still works.

Each step is a separate method so callers and tests can drive either
branch on its own.
"""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .config import SignerConfig
from .crypto import PIN_DIGEST_LENGTH
from .exceptions import (
    CapabilityUnavailableError,
    HardwareSecretMissingError,
    NoCredentialError,
    UserCancelledError,
)


logger = logging.getLogger(__name__)

# PRF outputs are 32 bytes; anything shorter is not a usable secret
MIN_SECRET_LENGTH = 32


@dataclass(frozen=True)
class RelyingParty:
    """Application identity a credential is scoped to."""

    id: str
    name: str


@dataclass(frozen=True)
class CapabilityResult:
    """
    Raw answer from the platform capability.

    Attributes:
        credential_id: base64url identifier of the credential used.
        secret: PRF output, or None if the platform did not evaluate PRF.
    """

    credential_id: str
    secret: Optional[bytes] = field(default=None, repr=False)


class CredentialCapability(ABC):
    """
    Platform biometric/credential capability.

    Implementations block until the user completes or dismisses the
    prompt, and raise UserCancelledError on dismissal or timeout and
    CapabilityUnavailableError when the hardware cannot be used.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if a user-verifying authenticator with PRF is present."""

    @abstractmethod
    def get(
        self,
        evaluation_input: bytes,
        *,
        rp: RelyingParty,
        timeout: float,
    ) -> Optional[CapabilityResult]:
        """Assert with an existing credential; None if none is registered."""

    @abstractmethod
    def create(
        self,
        evaluation_input: bytes,
        *,
        rp: RelyingParty,
        user_name: str,
        display_name: str,
        timeout: float,
    ) -> CapabilityResult:
        """Register a new credential and evaluate PRF with it."""


class ProbeOutcome(enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CredentialResult:
    """Outcome of find_or_create()."""

    credential_id: str
    hardware_secret: bytes = field(repr=False)
    was_existing: bool


def truncate_address(address: str) -> str:
    """Shorten an address for display, e.g. 0x1234...abcd."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _check_pin_digest(pin_digest: bytes) -> None:
    if not isinstance(pin_digest, bytes):
        raise TypeError(f"PIN digest must be bytes, got {type(pin_digest).__name__}")
    if len(pin_digest) != PIN_DIGEST_LENGTH:
        raise ValueError(
            f"PIN digest must be {PIN_DIGEST_LENGTH} bytes, got {len(pin_digest)}"
        )


def _require_secret(result: CapabilityResult) -> bytes:
    if not result.secret:
        raise HardwareSecretMissingError()
    if len(result.secret) < MIN_SECRET_LENGTH:
        raise HardwareSecretMissingError(
            f"PRF secret too short: expected at least {MIN_SECRET_LENGTH} bytes, "
            f"got {len(result.secret)}"
        )
    return result.secret


class CredentialGateway:
    """
    Discovers or creates the passkey credential and returns its PRF secret.

    Example:
        >>> gateway = CredentialGateway(capability, SignerConfig())
        >>> result = gateway.find_or_create(digest_pin("135790"))
        >>> result.was_existing
        False
    """

    def __init__(self, capability: CredentialCapability, config: SignerConfig | None = None):
        self.capability = capability
        self.config = config or SignerConfig()
        self.rp = RelyingParty(id=self.config.rp_id, name=self.config.rp_name)

    def check_support(self) -> None:
        """
        Raises:
            CapabilityUnavailableError: If the platform cannot evaluate PRF.
        """
        if not self.capability.is_available():
            logger.warning("Passkey PRF capability unavailable for rp %s", self.rp.id)
            raise CapabilityUnavailableError()

    def probe(self, pin_digest: bytes) -> Tuple[ProbeOutcome, Optional[CapabilityResult]]:
        """
        Try to assert with any existing credential (first step).

        A dismissed prompt is reported as CANCELLED rather than raised, so
        the caller can fall through to creation.

        Raises:
            CapabilityUnavailableError: If the platform cannot evaluate PRF.
        """
        _check_pin_digest(pin_digest)
        self.check_support()

        try:
            result = self.capability.get(pin_digest, rp=self.rp, timeout=self.config.prompt_timeout)
        except UserCancelledError:
            logger.info("Credential probe cancelled")
            return ProbeOutcome.CANCELLED, None

        if result is None:
            logger.info("No existing credential for rp %s", self.rp.id)
            return ProbeOutcome.NOT_FOUND, None

        logger.info("Found existing credential %s...", result.credential_id[:8])
        return ProbeOutcome.FOUND, result

    def create(self, pin_digest: bytes, *, user_name: str | None = None) -> CredentialResult:
        """
        Register a new credential (second step).

        Args:
            pin_digest: PRF evaluation input.
            user_name: Name stored with the credential, typically the
                truncated bound address.

        Raises:
            UserCancelledError: If the user dismisses the prompt.
            CapabilityUnavailableError: If the platform cannot evaluate PRF.
            HardwareSecretMissingError: If no PRF secret was returned.
        """
        _check_pin_digest(pin_digest)
        self.check_support()

        name = user_name or self.rp.name
        result = self.capability.create(
            pin_digest,
            rp=self.rp,
            user_name=name,
            display_name=f"Passkey for {name}",
            timeout=self.config.prompt_timeout,
        )
        secret = _require_secret(result)
        logger.info("Created credential %s...", result.credential_id[:8])
        return CredentialResult(result.credential_id, secret, was_existing=False)

    def find_or_create(self, pin_digest: bytes, *, user_name: str | None = None) -> CredentialResult:
        """
        Return the PRF secret of the existing credential, creating one if
        none is found or the probe was dismissed.

        Raises:
            UserCancelledError: If the creation prompt is dismissed.
            CapabilityUnavailableError: If the platform cannot evaluate PRF.
            HardwareSecretMissingError: If no PRF secret was returned.
        """
        outcome, found = self.probe(pin_digest)
        if outcome is ProbeOutcome.FOUND:
            return CredentialResult(found.credential_id, _require_secret(found), was_existing=True)
        return self.create(pin_digest, user_name=user_name)

    def reauthenticate(self, pin_digest: bytes) -> bytes:
        """
        Return the PRF secret of an existing credential without ever
        creating one.

        Raises:
            NoCredentialError: If no credential is registered.
            UserCancelledError: If the user dismisses the prompt.
            CapabilityUnavailableError: If the platform cannot evaluate PRF.
            HardwareSecretMissingError: If no PRF secret was returned.
        """
        outcome, found = self.probe(pin_digest)
        if outcome is ProbeOutcome.NOT_FOUND:
            raise NoCredentialError()
        if outcome is ProbeOutcome.CANCELLED:
            raise UserCancelledError()
        return _require_secret(found)
