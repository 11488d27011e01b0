import pytest

from tools.replica_errors import (
    GENERIC,
    SERVICE_STOPPED,
    SERVICE_STOPPED_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    MutationError,
    NotReadyError,
    classify,
    is_service_stopped,
)


@pytest.mark.parametrize("message", [
    "Call failed: IC0508 Canister rrkah-fqaaa is stopped",
    "ic0508",
    "Rejected. Reject code: 5, message: whatever",
    "The replica says this thing Is Stopped",
    "Canister abc has been STOPPED",
    "stopped: the CANISTER",
])
def test_service_stopped_messages(message):
    info = classify(RuntimeError(message))
    assert info.kind == SERVICE_STOPPED
    assert info.message == SERVICE_STOPPED_MESSAGE


def test_canister_and_stopped_need_both_words():
    assert classify(RuntimeError("canister upgrade in progress")).kind == GENERIC
    assert classify(RuntimeError("request stopped by proxy")).kind == GENERIC


def test_generic_keeps_original_message_and_cause():
    exc = ValueError("Invalid goal amount")
    info = classify(exc)
    assert info.kind == GENERIC
    assert info.message == "Invalid goal amount"
    assert info.cause is exc


@pytest.mark.parametrize("failure", [None, "", RuntimeError(), {"message": ""}])
def test_empty_failure_is_unknown_error(failure):
    info = classify(failure)
    assert info.kind == GENERIC
    assert info.message == UNKNOWN_ERROR_MESSAGE


def test_message_attribute_and_mapping_payloads():
    class Reject:
        message = "Reject code: 5"

    assert classify(Reject()).kind == SERVICE_STOPPED
    assert classify({"message": "quota exceeded"}).message == "quota exceeded"
    assert classify(42).message == "42"


def test_mapping_without_message_falls_back_to_its_string_form():
    payload = {"reject_code": 4, "reason": "quota exceeded"}
    info = classify(payload)
    assert info.kind == GENERIC
    assert info.message == str(payload)
    assert classify({"reject_code": 5, "detail": "canister is stopped"}).kind == SERVICE_STOPPED


def test_is_service_stopped():
    assert is_service_stopped("canister is stopped")
    assert not is_service_stopped("timeout")


def test_mutation_errors_carry_operation():
    err = MutationError("add goal", "boom")
    assert str(err) == "Failed to add goal: boom"
    assert err.operation == "add goal"
    not_ready = NotReadyError("delete investment")
    assert isinstance(not_ready, MutationError)
    assert "not ready" in str(not_ready)
