"""
Key derivation and ECDSA utilities for passkey-based signing.

This module turns a hardware-gated PRF secret into a secp256k1 private key
and wraps the Ethereum account library for signing and verification.

Derivation:
    seed = SHA-256(domain_tag || hardware_secret)
    while seed is not a valid secp256k1 scalar:
        seed = SHA-256(seed)

The loop is rejection sampling: a SHA-256 output is uniform over 256 bits,
the curve order is slightly below 2**256, and re-hashing rejected seeds
keeps the result unbiased while remaining fully deterministic. The same
inputs always take the same number of rounds and land on the same key.

Security Note:
    Private keys are never persisted. A PrivateKey instance can only be
    produced by derive_private_key(); constructing one directly raises
    TypeError.
"""

import hashlib
from dataclasses import InitVar, dataclass, field
from typing import Callable

from ecdsa import SECP256k1, SigningKey
from ecdsa.util import string_to_number
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import keccak, to_checksum_address

from .config import DEFAULT_DOMAIN_TAG, DEFAULT_MAX_DERIVATION_ROUNDS
from .exceptions import DerivationUnreachableError, InvalidSignatureError


# Curve used by Ethereum-compatible chains
CURVE = SECP256k1
CURVE_ORDER = SECP256k1.order

# Hash function for PIN digests and derivation rounds
HASH_FUNC = hashlib.sha256

KEY_LENGTH = 32
PIN_DIGEST_LENGTH = 32
SIGNATURE_LENGTH = 65

# Only derive_private_key holds this
_DERIVATION_TOKEN = object()


@dataclass(frozen=True)
class PrivateKey:
    """
    A 32-byte secp256k1 private key produced by derive_private_key().

    Attributes:
        rounds: Number of hash evaluations the derivation needed (>= 1).
    """

    key_bytes: bytes = field(repr=False)
    rounds: int = 1
    _token: InitVar[object] = None

    def __post_init__(self, _token: object) -> None:
        # Not stored, so dataclasses.replace() cannot carry it over
        if _token is not _DERIVATION_TOKEN:
            raise TypeError("PrivateKey instances are created only by derive_private_key()")
        if not is_valid_private_key(self.key_bytes):
            raise ValueError("Key bytes are not a valid secp256k1 scalar")

    def __bytes__(self) -> bytes:
        return self.key_bytes


def digest_pin(pin: str) -> bytes:
    """
    Hash a PIN into the 32-byte evaluation input sent to the authenticator.

    Depends on the PIN text only, so every device computes the same digest.
    """
    return HASH_FUNC(pin.encode("utf-8")).digest()


def is_valid_private_key(candidate: bytes) -> bool:
    """Return True if candidate is a 32-byte scalar in [1, n-1]."""
    if len(candidate) != KEY_LENGTH:
        return False
    return 0 < string_to_number(candidate) < CURVE_ORDER


def derive_private_key(
    hardware_secret: bytes,
    domain_tag: bytes = DEFAULT_DOMAIN_TAG,
    *,
    max_rounds: int = DEFAULT_MAX_DERIVATION_ROUNDS,
    hashfunc: Callable = HASH_FUNC,
) -> PrivateKey:
    """
    Derive a secp256k1 private key from a PRF secret.

    Args:
        hardware_secret: PRF output returned by the authenticator.
        domain_tag: Constant separating this key from other derivations.
        max_rounds: Hash evaluations allowed before giving up.
        hashfunc: hashlib-style constructor producing 32-byte digests.

    Returns:
        The first seed in the hash chain that is a valid private key.

    Raises:
        ValueError: If hardware_secret is empty.
        DerivationUnreachableError: If no valid seed appears within
            max_rounds hash evaluations.
    """
    if not hardware_secret:
        raise ValueError("Hardware secret cannot be empty")

    seed = hashfunc(domain_tag + hardware_secret).digest()
    rounds = 1

    while not is_valid_private_key(seed):
        if rounds >= max_rounds:
            raise DerivationUnreachableError(
                f"No valid private key after {rounds} hash rounds"
            )
        seed = hashfunc(seed).digest()
        rounds += 1

    return PrivateKey(key_bytes=seed, rounds=rounds, _token=_DERIVATION_TOKEN)


def public_key_bytes(private_key: PrivateKey) -> bytes:
    """Return the 65-byte uncompressed SEC1 public key."""
    signing_key = SigningKey.from_string(private_key.key_bytes, curve=CURVE)
    return signing_key.get_verifying_key().to_string("uncompressed")


def address_from_private_key(private_key: PrivateKey) -> str:
    """
    Compute the EIP-55 checksum address for a private key.

    Computed from the curve point directly, independently of the account
    library, so the two can be cross-checked.
    """
    point = public_key_bytes(private_key)[1:]
    return to_checksum_address("0x" + keccak(point)[-20:].hex())


@dataclass(frozen=True)
class SigningAccount:
    """
    A derived private key paired with its Ethereum account.

    Attributes:
        address: Checksum address of the derived key.
        bound_address: External address the account was authenticated for,
            or None when used without an account binding.
        credential_id: Identifier of the passkey that released the secret.
    """

    private_key: PrivateKey = field(repr=False)
    account: LocalAccount = field(repr=False, compare=False)
    address: str
    bound_address: str | None = None
    credential_id: str | None = None

    def sign(self, message: str | bytes) -> bytes:
        """Sign a message with EIP-191 personal-sign formatting."""
        return sign_message(self.account, message)


def account_from_private_key(
    private_key: PrivateKey,
    *,
    bound_address: str | None = None,
    credential_id: str | None = None,
) -> SigningAccount:
    """Construct a SigningAccount from a derived private key."""
    account = Account.from_key(private_key.key_bytes)
    return SigningAccount(
        private_key=private_key,
        account=account,
        address=account.address,
        bound_address=bound_address,
        credential_id=credential_id,
    )


def _signable(message: str | bytes):
    if isinstance(message, str):
        return encode_defunct(text=message)
    if isinstance(message, bytes):
        return encode_defunct(primitive=message)
    raise TypeError(f"Message must be str or bytes, got {type(message).__name__}")


def sign_message(account: LocalAccount, message: str | bytes) -> bytes:
    """
    Sign a message with an Ethereum account.

    Formatting (the EIP-191 prefix) is left to eth-account; RFC 6979
    nonces make the signature deterministic for a given key and message.

    Returns:
        65-byte recoverable signature (r || s || v).
    """
    signed = account.sign_message(_signable(message))
    return bytes(signed.signature)


def recover_address(message: str | bytes, signature: bytes) -> str:
    """
    Recover the signer address from a personal-sign signature.

    Raises:
        InvalidSignatureError: If the signature cannot be parsed.
    """
    if len(signature) != SIGNATURE_LENGTH:
        raise InvalidSignatureError(
            f"Invalid signature length: expected {SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )
    try:
        return Account.recover_message(_signable(message), signature=signature)
    except Exception as e:
        raise InvalidSignatureError(f"Invalid signature format: {e}") from e


def verify_signature(address: str, message: str | bytes, signature: bytes) -> bool:
    """
    Verify that signature over message was produced by address.

    Returns:
        True if the recovered signer matches address, False otherwise.

    Raises:
        InvalidSignatureError: If the signature format is invalid.
    """
    return recover_address(message, signature).lower() == address.lower()
