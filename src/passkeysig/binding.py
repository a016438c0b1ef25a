"""
Binding between the signing session and one external address.

The active address comes either from a connected wallet or from manually
entered input, selected by the address mode. Every change of the active
address or of its source is broadcast to subscribers, including
re-selecting the same address through a different source: subscribers
(the signing session) must re-authenticate rather than risk using a stale
cached key. Updates that leave both unchanged are not broadcast.
"""

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from eth_utils import is_address, is_checksum_address, to_checksum_address

from .exceptions import InvalidAddressError
from .storage import KeyValueStore, NullStore


logger = logging.getLogger(__name__)

MANUAL_ADDRESS_KEY = "manual_address"
ADDRESS_MODE_KEY = "address_mode"


class AddressMode(str, enum.Enum):
    WALLET = "wallet"
    MANUAL = "manual"


class AddressSource(str, enum.Enum):
    WALLET = "wallet"
    MANUAL = "manual"


@dataclass(frozen=True)
class AddressChange:
    """Notification sent to subscribers after the active address is re-resolved."""

    previous: Optional[str]
    current: Optional[str]
    source: Optional[AddressSource]


Listener = Callable[[AddressChange], None]


def validate_address(value: str) -> str:
    """
    Validate manually entered address input.

    Accepts 0x-prefixed 40-digit hex in all-lower, all-upper or valid
    EIP-55 mixed case.

    Returns:
        The checksum form of the address.

    Raises:
        InvalidAddressError: If the input is empty, lacks the 0x prefix,
            is malformed, or fails the mixed-case checksum.
    """
    candidate = value.strip() if isinstance(value, str) else ""
    if not candidate:
        raise InvalidAddressError("Address is required")
    if not candidate.startswith("0x"):
        raise InvalidAddressError("Address must start with 0x")
    if not is_address(candidate):
        raise InvalidAddressError()

    body = candidate[2:]
    if body != body.lower() and body != body.upper() and not is_checksum_address(candidate):
        raise InvalidAddressError("Address checksum mismatch")
    return to_checksum_address(candidate)


class AccountBinding:
    """
    Tracks exactly one active address.

    Manual address and mode are kept in the bookkeeping store so they can
    be restored on the next start when persistence is enabled.

    Example:
        >>> binding = AccountBinding()
        >>> binding.set_mode(AddressMode.MANUAL)
        >>> binding.set_manual_address("0x52908400098527886e0f7030069857d2e4169ee7")
        >>> binding.active_address
        '0x52908400098527886E0F7030069857D2E4169EE7'
    """

    def __init__(self, store: KeyValueStore | None = None):
        self.store = store or NullStore()
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        self._wallet_address: Optional[str] = None

        saved_mode = self.store.get(ADDRESS_MODE_KEY)
        self._mode = AddressMode.MANUAL if saved_mode == AddressMode.MANUAL.value else AddressMode.WALLET

        self._manual_address: Optional[str] = None
        saved_address = self.store.get(MANUAL_ADDRESS_KEY)
        if saved_address:
            try:
                self._manual_address = validate_address(saved_address)
            except InvalidAddressError:
                logger.warning("Ignoring invalid stored manual address")
                self.store.delete(MANUAL_ADDRESS_KEY)

    @property
    def mode(self) -> AddressMode:
        return self._mode

    @property
    def wallet_address(self) -> Optional[str]:
        return self._wallet_address

    @property
    def manual_address(self) -> Optional[str]:
        return self._manual_address

    @property
    def source(self) -> Optional[AddressSource]:
        with self._lock:
            if self._mode is AddressMode.WALLET and self._wallet_address:
                return AddressSource.WALLET
            if self._mode is AddressMode.MANUAL and self._manual_address:
                return AddressSource.MANUAL
            return None

    @property
    def active_address(self) -> Optional[str]:
        with self._lock:
            source = self.source
            if source is AddressSource.WALLET:
                return self._wallet_address
            if source is AddressSource.MANUAL:
                return self._manual_address
            return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            A callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _update(self, mutate: Callable[[], None]) -> None:
        with self._lock:
            previous, previous_source = self.active_address, self.source
            mutate()
            change = AddressChange(previous, self.active_address, self.source)
            if (change.previous, change.source) == (change.current, previous_source):
                return
            listeners = list(self._listeners)

        logger.debug("Active address %s -> %s (%s)", change.previous, change.current, change.source)
        for listener in listeners:
            listener(change)

    def connect_wallet(self, address: str) -> None:
        """Record the address reported by a wallet connection."""
        checksummed = to_checksum_address(address)

        def mutate():
            self._wallet_address = checksummed

        self._update(mutate)

    def disconnect_wallet(self) -> None:
        def mutate():
            self._wallet_address = None

        self._update(mutate)

    def set_manual_address(self, value: str) -> str:
        """
        Validate and store a manually entered address.

        Invalid input raises InvalidAddressError and leaves all state,
        including subscribers, untouched.

        Returns:
            The checksum form of the stored address.
        """
        checksummed = validate_address(value)

        def mutate():
            self._manual_address = checksummed
            self.store.set(MANUAL_ADDRESS_KEY, checksummed)

        self._update(mutate)
        return checksummed

    def clear_manual_address(self) -> None:
        def mutate():
            self._manual_address = None
            self.store.delete(MANUAL_ADDRESS_KEY)

        self._update(mutate)

    def set_mode(self, mode: AddressMode | str) -> None:
        mode = AddressMode(mode)

        def mutate():
            self._mode = mode
            self.store.set(ADDRESS_MODE_KEY, mode.value)

        self._update(mutate)
