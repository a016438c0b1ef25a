"""Tests for the account binding."""

import pytest

from passkeysig.binding import (
    ADDRESS_MODE_KEY,
    MANUAL_ADDRESS_KEY,
    AccountBinding,
    AddressMode,
    AddressSource,
    validate_address,
)
from passkeysig.exceptions import InvalidAddressError
from passkeysig.storage import MemoryStore


CHECKSUM_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
OTHER_ADDRESS = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"


class TestValidateAddress:
    """Test manual address validation."""

    def test_checksum_address_accepted(self):
        assert validate_address(CHECKSUM_ADDRESS) == CHECKSUM_ADDRESS

    def test_lowercase_address_accepted(self):
        assert validate_address(CHECKSUM_ADDRESS.lower()) == CHECKSUM_ADDRESS

    def test_uppercase_body_accepted(self):
        assert validate_address("0x" + CHECKSUM_ADDRESS[2:].upper()) == CHECKSUM_ADDRESS

    def test_surrounding_whitespace_ignored(self):
        assert validate_address(f"  {CHECKSUM_ADDRESS}\n") == CHECKSUM_ADDRESS

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "   ",
            CHECKSUM_ADDRESS[2:],
            "0x1234",
            CHECKSUM_ADDRESS + "00",
            "0x" + "g" * 40,
            # last character's case flipped
            "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD",
        ],
    )
    def test_invalid_input_rejected(self, value):
        with pytest.raises(InvalidAddressError):
            validate_address(value)

    def test_missing_prefix_message(self):
        with pytest.raises(InvalidAddressError, match="0x"):
            validate_address(CHECKSUM_ADDRESS[2:])


class TestActiveAddress:
    """Test resolution of the active address."""

    def test_defaults_to_wallet_mode_without_address(self):
        binding = AccountBinding()

        assert binding.mode is AddressMode.WALLET
        assert binding.active_address is None
        assert binding.source is None

    def test_connected_wallet_is_active(self):
        binding = AccountBinding()
        binding.connect_wallet(CHECKSUM_ADDRESS.lower())

        assert binding.active_address == CHECKSUM_ADDRESS
        assert binding.source is AddressSource.WALLET

    def test_manual_address_needs_manual_mode(self):
        binding = AccountBinding()
        binding.set_manual_address(OTHER_ADDRESS)

        assert binding.active_address is None

        binding.set_mode(AddressMode.MANUAL)

        assert binding.active_address == OTHER_ADDRESS
        assert binding.source is AddressSource.MANUAL

    def test_mode_selects_between_sources(self):
        binding = AccountBinding()
        binding.connect_wallet(CHECKSUM_ADDRESS)
        binding.set_manual_address(OTHER_ADDRESS)

        binding.set_mode("manual")
        assert binding.active_address == OTHER_ADDRESS

        binding.set_mode(AddressMode.WALLET)
        assert binding.active_address == CHECKSUM_ADDRESS

    def test_clear_manual_address(self):
        binding = AccountBinding()
        binding.set_mode(AddressMode.MANUAL)
        binding.set_manual_address(OTHER_ADDRESS)

        binding.clear_manual_address()

        assert binding.active_address is None


class TestNotifications:
    """Test change notifications."""

    def test_listener_receives_changes(self):
        binding = AccountBinding()
        changes = []
        binding.subscribe(changes.append)

        binding.connect_wallet(CHECKSUM_ADDRESS)
        binding.connect_wallet(OTHER_ADDRESS)

        assert [(c.previous, c.current) for c in changes] == [
            (None, CHECKSUM_ADDRESS),
            (CHECKSUM_ADDRESS, OTHER_ADDRESS),
        ]
        assert changes[-1].source is AddressSource.WALLET

    def test_reselection_of_same_address_notifies(self):
        binding = AccountBinding()
        binding.connect_wallet(CHECKSUM_ADDRESS)
        binding.set_manual_address(CHECKSUM_ADDRESS)
        changes = []
        binding.subscribe(changes.append)

        binding.set_mode(AddressMode.MANUAL)

        assert len(changes) == 1
        assert changes[0].previous == changes[0].current == CHECKSUM_ADDRESS
        assert changes[0].source is AddressSource.MANUAL

    def test_inactive_source_updates_are_silent(self):
        binding = AccountBinding()
        binding.connect_wallet(CHECKSUM_ADDRESS)
        changes = []
        binding.subscribe(changes.append)

        binding.set_manual_address(OTHER_ADDRESS)
        binding.set_mode(AddressMode.WALLET)
        binding.set_mode(AddressMode.MANUAL)
        binding.disconnect_wallet()

        assert [(c.previous, c.current) for c in changes] == [(CHECKSUM_ADDRESS, OTHER_ADDRESS)]
        assert binding.active_address == OTHER_ADDRESS

    def test_invalid_manual_input_changes_nothing(self):
        binding = AccountBinding()
        binding.set_mode(AddressMode.MANUAL)
        binding.set_manual_address(CHECKSUM_ADDRESS)
        changes = []
        binding.subscribe(changes.append)

        with pytest.raises(InvalidAddressError):
            binding.set_manual_address("0xnot-an-address")

        assert binding.active_address == CHECKSUM_ADDRESS
        assert changes == []

    def test_unsubscribe(self):
        binding = AccountBinding()
        changes = []
        unsubscribe = binding.subscribe(changes.append)

        unsubscribe()
        binding.connect_wallet(CHECKSUM_ADDRESS)

        assert changes == []


class TestPersistence:
    """Test that address preferences survive through the store."""

    def test_manual_address_and_mode_restored(self):
        store = MemoryStore()
        binding = AccountBinding(store)
        binding.set_mode(AddressMode.MANUAL)
        binding.set_manual_address(OTHER_ADDRESS.lower())

        restored = AccountBinding(store)

        assert restored.mode is AddressMode.MANUAL
        assert restored.active_address == OTHER_ADDRESS

    def test_wallet_address_not_persisted(self):
        store = MemoryStore()
        AccountBinding(store).connect_wallet(CHECKSUM_ADDRESS)

        assert AccountBinding(store).active_address is None

    def test_invalid_stored_address_discarded(self):
        store = MemoryStore()
        store.set(MANUAL_ADDRESS_KEY, "garbage")
        store.set(ADDRESS_MODE_KEY, "manual")

        binding = AccountBinding(store)

        assert binding.manual_address is None
        assert store.get(MANUAL_ADDRESS_KEY) is None
