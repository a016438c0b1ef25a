"""
Signing session state machine.

    Unauthenticated --authenticate(pin) ok--> Authenticated(account)
    Authenticated   --logout() / address change--> Unauthenticated

The derived account is cached in memory only, for the lifetime of the
Authenticated state. authenticate() is single-flight: at most one
biometric prompt per session is outstanding at any time, and a second
concurrent call is rejected instead of opening a competing prompt.

Errors from the gateway and the deriver propagate unchanged. The session
never retries on its own; every retry is a new user-initiated
authenticate() call. After a fatal error (the device cannot take part in
deterministic derivation) the authenticate path stays disabled for the
rest of the session.
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .binding import AccountBinding, AddressChange
from .config import SignerConfig
from .crypto import SigningAccount, account_from_private_key, derive_private_key, digest_pin
from .exceptions import (
    AuthenticationInProgressError,
    InvalidPinError,
    NoActiveAddressError,
    NotAuthenticatedError,
    PasskeySigError,
    UnexpectedAccountMismatchError,
    UserCancelledError,
)
from .gateway import CredentialGateway, truncate_address
from .storage import CredentialRecord, CredentialRegistry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class Authenticated:
    account: SigningAccount


SessionState = Union[Unauthenticated, Authenticated]

UNAUTHENTICATED = Unauthenticated()


class SigningSessionManager:
    """
    Owns the session state and the cached signing account.

    Args:
        gateway: Credential gateway used to obtain PRF secrets.
        config: Signer configuration; defaults to SignerConfig().
        binding: Optional account binding. When given, an active address is
            required to authenticate and every address change logs out.
        registry: Optional credential registry for bookkeeping and signer
            address verification.

    Example:
        >>> session = SigningSessionManager(CredentialGateway(EmulatedAuthenticator()))
        >>> account = session.authenticate("135790")
        >>> signature = session.sign("hello")
        >>> session.logout()
    """

    def __init__(
        self,
        gateway: CredentialGateway,
        config: SignerConfig | None = None,
        *,
        binding: AccountBinding | None = None,
        registry: CredentialRegistry | None = None,
    ):
        self.gateway = gateway
        self.config = config or gateway.config
        self.binding = binding
        self.registry = registry

        self._pin_pattern = re.compile(r"[0-9]{%d}" % self.config.pin_length)
        self._state: SessionState = UNAUTHENTICATED
        self._state_lock = threading.Lock()
        self._flight_lock = threading.Lock()
        # Bumped on every forced logout so in-flight results can be discarded
        self._generation = 0
        self._disabled: Optional[PasskeySigError] = None

        self._unsubscribe: Optional[Callable[[], None]] = None
        if binding is not None:
            self._unsubscribe = binding.subscribe(self._on_address_change)

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def account(self) -> Optional[SigningAccount]:
        state = self.state
        return state.account if isinstance(state, Authenticated) else None

    @property
    def is_disabled(self) -> bool:
        return self._disabled is not None

    @property
    def disabled_reason(self) -> Optional[PasskeySigError]:
        return self._disabled

    def is_authenticated(self) -> bool:
        return isinstance(self.state, Authenticated)

    def validate_pin(self, pin: str) -> None:
        """
        Raises:
            InvalidPinError: If pin is not exactly pin_length ASCII digits.
        """
        if not isinstance(pin, str) or not self._pin_pattern.fullmatch(pin):
            raise InvalidPinError(f"PIN must be {self.config.pin_length} digits")

    def authenticate(self, pin: str, *, expected_address: str | None = None) -> SigningAccount:
        """
        Derive the signing account from the passkey PRF secret and a PIN.

        Returns the cached account without prompting when already
        authenticated.

        Args:
            pin: Numeric PIN of the configured length.
            expected_address: Signer address the derivation must produce.

        Raises:
            InvalidPinError: Malformed PIN; no prompt is shown.
            NoActiveAddressError: A binding is attached but has no address.
            AuthenticationInProgressError: Another call is in flight.
            UserCancelledError: The prompt was dismissed, or the session
                was logged out while the prompt was open.
            CapabilityUnavailableError, HardwareSecretMissingError,
            DerivationUnreachableError: Fatal; the session is disabled.
            UnexpectedAccountMismatchError: The derived signer differs from
                the expected or previously recorded one.
        """
        self.validate_pin(pin)

        with self._state_lock:
            if isinstance(self._state, Authenticated):
                return self._state.account
            generation = self._generation

        if self._disabled is not None:
            raise self._disabled

        bound_address = None
        if self.binding is not None:
            bound_address = self.binding.active_address
            if bound_address is None:
                raise NoActiveAddressError()

        if not self._flight_lock.acquire(blocking=False):
            raise AuthenticationInProgressError()
        try:
            account = self._derive_account(pin, bound_address, expected_address)

            with self._state_lock:
                if generation != self._generation:
                    raise UserCancelledError("Session changed while authenticating; please retry")
                if self.registry is not None:
                    self._record(account, bound_address)
                self._state = Authenticated(account)
            logger.info("Session authenticated as %s", account.address)
            return account
        except PasskeySigError as e:
            if e.fatal:
                self._disabled = e
                logger.warning("Disabling passkey authentication for this session: %s", e.message)
            raise
        finally:
            self._flight_lock.release()

    def _derive_account(
        self,
        pin: str,
        bound_address: Optional[str],
        expected_address: Optional[str],
    ) -> SigningAccount:
        user_name = truncate_address(bound_address) if bound_address else None

        result = self.gateway.find_or_create(digest_pin(pin), user_name=user_name)
        private_key = derive_private_key(
            result.hardware_secret,
            self.config.domain_tag,
            max_rounds=self.config.max_derivation_rounds,
        )
        account = account_from_private_key(
            private_key,
            bound_address=bound_address,
            credential_id=result.credential_id,
        )

        if expected_address is not None and expected_address.lower() != account.address.lower():
            raise UnexpectedAccountMismatchError(expected_address, account.address)
        return account

    def _record(self, account: SigningAccount, bound_address: Optional[str]) -> None:
        """
        Check the derived signer against earlier records and save it.

        Bound sessions compare against the newest record for the bound
        address, whichever credential produced it. Unbound sessions compare
        against the unbound record of the same credential.
        """
        if bound_address is not None:
            previous = self.registry.get_by_address(bound_address)
        else:
            previous = self.registry.find(account.credential_id, None)

        if (
            self.config.verify_signer_address
            and previous is not None
            and previous.signer_address
            and previous.signer_address.lower() != account.address.lower()
        ):
            raise UnexpectedAccountMismatchError(previous.signer_address, account.address)

        existing = self.registry.find(account.credential_id, bound_address)
        self.registry.save(
            CredentialRecord(
                credential_id=account.credential_id,
                address=bound_address,
                username=truncate_address(bound_address or account.address),
                created_at=existing.created_at if existing else 0,
                signer_address=account.address,
            )
        )

    def sign(self, message: str | bytes) -> bytes:
        """
        Sign a message with the cached account.

        Raises:
            NotAuthenticatedError: If the session is not authenticated.
        """
        with self._state_lock:
            state = self._state
        if not isinstance(state, Authenticated):
            raise NotAuthenticatedError()
        return state.account.sign(message)

    def logout(self) -> None:
        """Drop the cached account. Safe to call in any state."""
        self._reset("logout")

    def _reset(self, reason: str) -> None:
        with self._state_lock:
            was_authenticated = isinstance(self._state, Authenticated)
            self._state = UNAUTHENTICATED
            self._generation += 1
        if was_authenticated:
            logger.info("Session cleared (%s)", reason)

    def _on_address_change(self, change: AddressChange) -> None:
        self._reset(f"address changed to {change.current}")

    def close(self) -> None:
        """Log out and stop listening to the account binding."""
        self.logout()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
