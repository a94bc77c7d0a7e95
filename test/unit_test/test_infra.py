"""
Test Infrastructure Module

Tests for amm_orchestrator.infra package (Signer, error classification,
correlation IDs).
"""

import sys
import logging
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


class FakeWallet:
    """Minimal wallet satisfying the Signer protocol"""

    account_id = "alice.near"
    supports_batch = True

    async def sign_and_send_transactions(self, transactions):
        return "9xQ"


def test_signer_protocol():
    """Test Signer protocol is runtime checkable"""
    from amm_orchestrator.infra import Signer

    print("Testing Signer protocol...")

    assert isinstance(FakeWallet(), Signer)
    assert not isinstance(object(), Signer)

    print("  Signer protocol: PASSED")


def test_cancellation_detection():
    """Test user cancellations are recognized"""
    from amm_orchestrator.infra import is_user_cancellation
    from amm_orchestrator.errors import SigningCancelled

    print("Testing cancellation detection...")

    assert is_user_cancellation(None), "Null error counts as cancellation"
    assert is_user_cancellation({}), "Empty error object counts as cancellation"
    assert is_user_cancellation(Exception()), "Message-less error counts as cancellation"
    assert is_user_cancellation(Exception("User rejected the request"))
    assert is_user_cancellation("User closed the window")
    assert is_user_cancellation(SigningCancelled())
    assert not is_user_cancellation(Exception("Exceeded the prepaid gas"))

    print("  Cancellation detection: PASSED")


def test_unavailable_detection():
    """Test blocked popup detection"""
    from amm_orchestrator.infra import is_signing_unavailable

    print("Testing unavailable detection...")

    assert is_signing_unavailable(Exception("Couldn't open popup window to complete wallet action"))
    assert is_signing_unavailable({"type": "MeteorActionError", "message": "failed"})
    assert not is_signing_unavailable(Exception("User rejected the request"))

    print("  Unavailable detection: PASSED")


def test_classify_signer_error():
    """Test wallet errors map onto the signer error family"""
    from amm_orchestrator.infra import classify_signer_error
    from amm_orchestrator.errors import (
        SignerError,
        SigningCancelled,
        SigningUnavailable,
        ErrorCode,
    )

    print("Testing classify_signer_error...")

    # Popup text also contains "cancelled"; unavailable wins
    error = classify_signer_error(Exception("Couldn't open popup window, request was cancelled"))
    assert isinstance(error, SigningUnavailable)
    assert error.code.value == "6004"

    original = Exception("User rejected the request")
    error = classify_signer_error(original)
    assert isinstance(error, SigningCancelled)
    assert error.original_error is original

    assert isinstance(classify_signer_error(None), SigningCancelled)

    error = classify_signer_error(RuntimeError("Exceeded the prepaid gas"))
    assert type(error) is SignerError
    assert error.code == ErrorCode.SIGNER_FAILED
    assert "prepaid gas" in error.message

    configured = SignerError.not_configured()
    assert classify_signer_error(configured) is configured

    print("  classify_signer_error: PASSED")


def test_error_message():
    """Test readable messages from wallet errors"""
    from amm_orchestrator.infra import error_message

    print("Testing error_message...")

    assert error_message(None) == ""
    assert error_message("boom") == "boom"
    assert error_message(ValueError("bad")) == "bad"
    assert error_message({"code": 1}) == '{"code": 1}'

    print("  error_message: PASSED")


def test_correlation_context():
    """Test correlation IDs are scoped"""
    from amm_orchestrator.infra import CorrelationContext, get_correlation_id

    print("Testing CorrelationContext...")

    assert get_correlation_id() is None

    with CorrelationContext("swap") as cid:
        assert cid.startswith("swap_")
        assert get_correlation_id() == cid

        with CorrelationContext("lp_add") as inner:
            assert get_correlation_id() == inner

        assert get_correlation_id() == cid

    assert get_correlation_id() is None

    print("  CorrelationContext: PASSED")


def test_log_with_correlation(caplog):
    """Test structured log fields"""
    from amm_orchestrator.infra import CorrelationContext, log_with_correlation

    print("Testing log_with_correlation...")

    log = logging.getLogger("amm_orchestrator.test")
    with caplog.at_level(logging.INFO, logger="amm_orchestrator.test"):
        with CorrelationContext("swap") as cid:
            log_with_correlation(logging.INFO, "Swapping", "swap", log, tx_hash="9xQ")

    record = caplog.records[-1]
    assert record.correlation_id == cid
    assert record.operation == "swap"
    assert record.tx_hash == "9xQ"
    assert record.getMessage() == f"[{cid}] [swap] Swapping"

    print("  log_with_correlation: PASSED")


def main():
    """Run all tests"""
    print("=" * 60)
    print("Infrastructure Tests")
    print("=" * 60)

    tests = [
        test_signer_protocol,
        test_cancellation_detection,
        test_unavailable_detection,
        test_classify_signer_error,
        test_error_message,
        test_correlation_context,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
