"""
Configuration for passkey-based signing.

All tunables live in a single frozen dataclass so a signer, its gateway and
its session always agree on the relying party, the PIN format and the
derivation domain.
"""

import enum
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping


DEFAULT_RP_NAME = "FaceWallet"
DEFAULT_RP_ID = "localhost"

# Mixed into every derivation so this key is separated from any other use
# of the same PRF output
DEFAULT_DOMAIN_TAG = b"ecdsa-signing-key-v1"

DEFAULT_PIN_LENGTH = 6

# Each round succeeds with probability ~1 - 2**-128, so this is never hit
DEFAULT_MAX_DERIVATION_ROUNDS = 1024

# Seconds; enforced by the platform, passed through as advisory
DEFAULT_PROMPT_TIMEOUT = 60.0


class Persistence(str, enum.Enum):
    """Where address and credential bookkeeping is kept."""

    NONE = "none"
    SESSION = "session"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class SignerConfig:
    """
    Parameters for a passkey signer.

    Attributes:
        rp_name: Relying party display name shown in the platform prompt.
        rp_id: Relying party identifier the credential is scoped to.
        domain_tag: Constant mixed into key derivation.
        pin_length: Exact number of digits a PIN must have.
        max_derivation_rounds: Hash evaluations allowed before derivation
            gives up with DerivationUnreachableError.
        persistence: Bookkeeping persistence policy.
        store_path: JSON file used when persistence is PERSISTENT.
        verify_signer_address: Record the derived signer address on first
            use and reject later derivations that disagree.
        prompt_timeout: Advisory prompt timeout in seconds.

    Security Note:
        Changing domain_tag or rp_id changes every derived key. Treat both
        as part of the account identity.
    """

    rp_name: str = DEFAULT_RP_NAME
    rp_id: str = DEFAULT_RP_ID
    domain_tag: bytes = DEFAULT_DOMAIN_TAG
    pin_length: int = DEFAULT_PIN_LENGTH
    max_derivation_rounds: int = DEFAULT_MAX_DERIVATION_ROUNDS
    persistence: Persistence = Persistence.SESSION
    store_path: Path | None = None
    verify_signer_address: bool = True
    prompt_timeout: float = DEFAULT_PROMPT_TIMEOUT

    def __post_init__(self) -> None:
        if not self.rp_id:
            raise ValueError("rp_id must not be empty")
        if not isinstance(self.domain_tag, bytes) or not self.domain_tag:
            raise ValueError("domain_tag must be non-empty bytes")
        if self.pin_length < 4:
            raise ValueError("pin_length must be at least 4")
        if self.max_derivation_rounds < 1:
            raise ValueError("max_derivation_rounds must be positive")
        if self.prompt_timeout <= 0:
            raise ValueError("prompt_timeout must be positive")
        if not isinstance(self.persistence, Persistence):
            object.__setattr__(self, "persistence", Persistence(self.persistence))
        if self.store_path is not None and not isinstance(self.store_path, Path):
            object.__setattr__(self, "store_path", Path(self.store_path))
        if self.persistence is Persistence.PERSISTENT and self.store_path is None:
            raise ValueError("store_path is required for persistent storage")

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> "SignerConfig":
        """
        Build a config from plain settings, e.g. a parsed settings file.

        Unknown keys are rejected; ``domain_tag`` may be given as text.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(settings) - known
        if unknown:
            raise ValueError(f"Unknown signer settings: {', '.join(sorted(unknown))}")

        values = dict(settings)
        if isinstance(values.get("domain_tag"), str):
            values["domain_tag"] = values["domain_tag"].encode("utf-8")
        return cls(**values)
