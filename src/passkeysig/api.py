"""
Public API for passkey-based signing.

This module provides the main entry points for the passkeysig library:
- derive_account(): Derive the signing account from a PRF secret
- sign(): Sign a message with a PRF secret, without a session
- verify(): Verify a signature against a signer address
- PasskeySigner: Wires configuration, storage, gateway, account binding and
  session together for interactive use

The library is platform-agnostic: the biometric authenticator is supplied
as a CredentialCapability. The caller is responsible for:
- Bridging the capability to the platform passkey API (WebAuthn with the
  PRF extension, or an equivalent native API)
- Collecting the PIN and never storing it

Security Assumptions:
    1. The platform releases a PRF secret only after user verification.
    2. The PRF output for a given (credential, evaluation input) pair is
       identical on every device the credential is synchronized to.
       This cannot be verified locally; signer address verification turns
       a violation into UnexpectedAccountMismatchError instead of silently
       deriving a different key.
    3. Losing the PIN means losing the derived account.

Example:
    >>> signer = PasskeySigner(EmulatedAuthenticator())
    >>> signer.binding.connect_wallet("0x52908400098527886e0f7030069857d2e4169ee7")
    >>> account = signer.authenticate("135790")
    >>> signature = signer.sign("Hello, World!")
    >>> verify(account.address, "Hello, World!", signature)
    True
"""

import logging
from typing import List, Optional

from .binding import AccountBinding
from .config import DEFAULT_DOMAIN_TAG, SignerConfig
from .crypto import (
    SigningAccount,
    account_from_private_key,
    derive_private_key,
    verify_signature,
)
from .gateway import CredentialCapability, CredentialGateway
from .session import SigningSessionManager
from .storage import CredentialRecord, CredentialRegistry, open_store


logger = logging.getLogger(__name__)


def derive_account(hardware_secret: bytes, domain_tag: bytes = DEFAULT_DOMAIN_TAG) -> SigningAccount:
    """
    Derive the signing account for a PRF secret.

    Args:
        hardware_secret: PRF output returned by the authenticator.
        domain_tag: Derivation domain; must match the signer configuration.

    Returns:
        SigningAccount whose address is the derived signer address.

    Raises:
        ValueError: If hardware_secret is empty.
        DerivationUnreachableError: If derivation does not converge.
    """
    return account_from_private_key(derive_private_key(hardware_secret, domain_tag))


def sign(hardware_secret: bytes, message: str | bytes, domain_tag: bytes = DEFAULT_DOMAIN_TAG) -> bytes:
    """
    Sign a message with the account derived from a PRF secret.

    Returns:
        65-byte recoverable ECDSA signature.
    """
    if message is None:
        raise ValueError("Message cannot be None")
    return derive_account(hardware_secret, domain_tag).sign(message)


def verify(address: str, message: str | bytes, signature: bytes) -> bool:
    """
    Verify a signature against a signer address.

    Returns:
        True if the signature was produced by address, False otherwise.

    Raises:
        ValueError: If address or signature is empty.
        InvalidSignatureError: If the signature format is invalid.
    """
    if not address:
        raise ValueError("Address cannot be empty")
    if message is None:
        raise ValueError("Message cannot be None")
    if not signature:
        raise ValueError("Signature cannot be empty")
    return verify_signature(address, message, signature)


class PasskeySigner:
    """
    Class-based interface for interactive passkey signing.

    Attributes:
        config: Signer configuration.
        binding: Active address tracking.
        gateway: Credential gateway over the capability.
        session: Session state machine.
        registry: Credential bookkeeping.

    Example:
        >>> signer = PasskeySigner(capability, SignerConfig(rp_id="wallet.example"))
        >>> signer.binding.connect_wallet(wallet_address)
        >>> signer.authenticate("135790")
        >>> signer.sign("message")
    """

    def __init__(self, capability: CredentialCapability, config: SignerConfig | None = None):
        self.config = config or SignerConfig()
        store = open_store(self.config.persistence, self.config.store_path)

        self.registry = CredentialRegistry(store)
        self.binding = AccountBinding(store)
        self.gateway = CredentialGateway(capability, self.config)
        self.session = SigningSessionManager(
            self.gateway,
            self.config,
            binding=self.binding,
            registry=self.registry,
        )
        logger.debug(
            "Passkey signer ready for rp %s (persistence=%s)",
            self.config.rp_id,
            self.config.persistence.value,
        )

    def is_supported(self) -> bool:
        """Return True if the platform can evaluate passkey PRF."""
        return self.gateway.capability.is_available()

    def authenticate(self, pin: str, *, expected_address: str | None = None) -> SigningAccount:
        """See SigningSessionManager.authenticate()."""
        return self.session.authenticate(pin, expected_address=expected_address)

    def sign(self, message: str | bytes) -> bytes:
        """See SigningSessionManager.sign()."""
        return self.session.sign(message)

    def verify(self, address: str, message: str | bytes, signature: bytes) -> bool:
        return verify(address, message, signature)

    def logout(self) -> None:
        self.session.logout()

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    def has_passkey(self, address: str | None = None) -> bool:
        """Return True if a credential is recorded for address (default: the active one)."""
        return self.credential_for(address) is not None

    def credential_for(self, address: str | None = None) -> Optional[CredentialRecord]:
        address = address or self.binding.active_address
        if address is None:
            return None
        return self.registry.get_by_address(address)

    def stored_credentials(self) -> List[CredentialRecord]:
        return self.registry.all()

    def delete_credential(self, credential_id: str) -> None:
        """
        Forget every record of a credential, for all addresses.

        The platform credential itself is managed by the operating system
        and is not removed.
        """
        self.registry.delete(credential_id)

    def close(self) -> None:
        self.session.close()
