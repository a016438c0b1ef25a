"""Pytest configuration and shared fixtures."""

import pytest

from passkeysig import (
    AccountBinding,
    CredentialGateway,
    CredentialRegistry,
    EmulatedAuthenticator,
    MemoryStore,
    SignerConfig,
    SigningSessionManager,
)

TEST_PIN = "135790"
WALLET_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
OTHER_ADDRESS = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"


@pytest.fixture
def config():
    return SignerConfig(rp_id="wallet.example")


@pytest.fixture
def authenticator():
    """A fresh emulated platform authenticator with no credentials."""
    return EmulatedAuthenticator()


@pytest.fixture
def gateway(authenticator, config):
    return CredentialGateway(authenticator, config)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store):
    return CredentialRegistry(store)


@pytest.fixture
def binding(store):
    binding = AccountBinding(store)
    binding.connect_wallet(WALLET_ADDRESS)
    return binding


@pytest.fixture
def session(gateway, config, binding, registry):
    """Session bound to a connected wallet address."""
    manager = SigningSessionManager(gateway, config, binding=binding, registry=registry)
    yield manager
    manager.close()
