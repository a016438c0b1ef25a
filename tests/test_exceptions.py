"""Tests for custom exceptions."""

import pytest

from passkeysig.exceptions import (
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


ALL_ERRORS = [
    InvalidPinError,
    UserCancelledError,
    CapabilityUnavailableError,
    HardwareSecretMissingError,
    NoCredentialError,
    NotAuthenticatedError,
    DerivationUnreachableError,
    AuthenticationInProgressError,
    NoActiveAddressError,
    InvalidAddressError,
    InvalidSignatureError,
    StorageError,
]


class TestExceptionHierarchy:
    """Test that all exceptions inherit from PasskeySigError."""

    @pytest.mark.parametrize("error", ALL_ERRORS + [UnexpectedAccountMismatchError])
    def test_inheritance(self, error):
        assert issubclass(error, PasskeySigError)
        assert issubclass(error, Exception)


class TestFatalKinds:
    """Test which errors disable the session."""

    @pytest.mark.parametrize(
        "error", [CapabilityUnavailableError, HardwareSecretMissingError, DerivationUnreachableError]
    )
    def test_fatal(self, error):
        assert error().fatal is True

    @pytest.mark.parametrize(
        "error",
        [InvalidPinError, UserCancelledError, NotAuthenticatedError, NoCredentialError, AuthenticationInProgressError],
    )
    def test_recoverable(self, error):
        assert error().fatal is False

    def test_mismatch_is_recoverable(self):
        assert UnexpectedAccountMismatchError("0xa", "0xb").fatal is False


class TestExceptionMessages:
    """Test exception default and custom messages."""

    @pytest.mark.parametrize("error", ALL_ERRORS)
    def test_default_message(self, error):
        exc = error()
        assert exc.message
        assert str(exc) == exc.message

    def test_custom_message(self):
        exc = UserCancelledError("Custom cancel message")

        assert str(exc) == "Custom cancel message"
        assert exc.message == "Custom cancel message"

    def test_mismatch_carries_addresses(self):
        exc = UnexpectedAccountMismatchError("0xexpected", "0xactual")

        assert exc.expected == "0xexpected"
        assert exc.actual == "0xactual"
        assert "0xexpected" in str(exc) and "0xactual" in str(exc)


class TestExceptionRaising:
    def test_catch_base_exception(self):
        with pytest.raises(PasskeySigError):
            raise InvalidPinError()

    def test_exception_chaining(self):
        try:
            try:
                raise ValueError("original")
            except ValueError as e:
                raise StorageError("wrapper") from e
        except StorageError as e:
            assert isinstance(e.__cause__, ValueError)
