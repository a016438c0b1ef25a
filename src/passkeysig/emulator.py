"""
Software emulation of a PRF-capable platform authenticator.

Implements CredentialCapability without hardware so signers can be run in
development and tests. PRF evaluation follows the WebAuthn mapping onto
CTAP2 hmac-secret:

    salt   = SHA-256("WebAuthn PRF" || 0x00 || evaluation_input)
    secret = HMAC-SHA256(credential_prf_key, salt)

clone() models a second device that received the same credentials through
platform synchronization.

Security Note:
    The emulator keeps PRF keys in memory and performs no user
    verification. Never use it to protect real funds.
"""

import base64
import copy
import hashlib
import hmac
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .exceptions import CapabilityUnavailableError, UserCancelledError
from .gateway import CapabilityResult, CredentialCapability, RelyingParty


logger = logging.getLogger(__name__)

PRF_CONTEXT = b"WebAuthn PRF\x00"


def _new_credential_id() -> str:
    return base64.urlsafe_b64encode(os.urandom(16)).rstrip(b"=").decode("ascii")


@dataclass
class EmulatedCredential:
    credential_id: str
    rp_id: str
    user_name: str
    prf_key: bytes = field(repr=False)


class EmulatedAuthenticator(CredentialCapability):
    """
    In-memory platform authenticator.

    Attributes:
        available: When False, every call raises CapabilityUnavailableError.
        prf_supported: When False, results carry no PRF secret.
        cancel_get: When True, get() behaves as if the user dismissed it.
        cancel_create: When True, create() behaves as if the user dismissed it.
        get_calls: Number of get() invocations.
        create_calls: Number of create() invocations.
    """

    def __init__(self, *, available: bool = True, prf_supported: bool = True):
        self.available = available
        self.prf_supported = prf_supported
        self.cancel_get = False
        self.cancel_create = False
        self.get_calls = 0
        self.create_calls = 0
        self._credentials: Dict[str, List[EmulatedCredential]] = {}
        self._lock = threading.Lock()

    @property
    def credentials(self) -> List[EmulatedCredential]:
        with self._lock:
            return [c for creds in self._credentials.values() for c in creds]

    def is_available(self) -> bool:
        return self.available

    def _evaluate(self, credential: EmulatedCredential, evaluation_input: bytes) -> Optional[bytes]:
        if not self.prf_supported:
            return None
        salt = hashlib.sha256(PRF_CONTEXT + evaluation_input).digest()
        return hmac.new(credential.prf_key, salt, hashlib.sha256).digest()

    def get(
        self,
        evaluation_input: bytes,
        *,
        rp: RelyingParty,
        timeout: float,
    ) -> Optional[CapabilityResult]:
        with self._lock:
            self.get_calls += 1
            if not self.available:
                raise CapabilityUnavailableError()
            if self.cancel_get:
                raise UserCancelledError()

            registered = self._credentials.get(rp.id)
            if not registered:
                return None

            # Platforms show an account picker; the first credential stands in for the user's choice
            credential = registered[0]
            return CapabilityResult(credential.credential_id, self._evaluate(credential, evaluation_input))

    def create(
        self,
        evaluation_input: bytes,
        *,
        rp: RelyingParty,
        user_name: str,
        display_name: str,
        timeout: float,
    ) -> CapabilityResult:
        with self._lock:
            self.create_calls += 1
            if not self.available:
                raise CapabilityUnavailableError()
            if self.cancel_create:
                raise UserCancelledError()

            credential = EmulatedCredential(
                credential_id=_new_credential_id(),
                rp_id=rp.id,
                user_name=user_name,
                prf_key=os.urandom(32),
            )
            self._credentials.setdefault(rp.id, []).append(credential)
            logger.debug("Emulated credential %s... created for %s", credential.credential_id[:8], display_name)
            return CapabilityResult(credential.credential_id, self._evaluate(credential, evaluation_input))

    def clone(self, *, diverge: bool = False) -> "EmulatedAuthenticator":
        """
        Return a second device holding the same synchronized credentials.

        Args:
            diverge: Replace the PRF keys of the copied credentials, modelling
                a platform that breaks the cross-device consistency guarantee.
        """
        other = EmulatedAuthenticator(available=self.available, prf_supported=self.prf_supported)
        with self._lock:
            other._credentials = copy.deepcopy(self._credentials)
        if diverge:
            for credential in other.credentials:
                credential.prf_key = os.urandom(32)
        return other
