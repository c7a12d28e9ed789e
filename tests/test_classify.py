from near_client.errors import ErrorKind, TypedError
from near_client.rpc.classify import (
    MAX_ERROR_DEPTH,
    classify,
    classify_query_error,
    classify_rpc_error,
    error_kind_from_message,
    format_error_message,
)


def test_legacy_shape():
    err = classify({"error_message": "Exceeded the prepaid gas", "error_type": "GasExceeded"})
    assert isinstance(err, TypedError)
    assert err.kind == "GasExceeded"
    assert err.message == "Exceeded the prepaid gas"


def test_nested_action_error_keeps_breadcrumb():
    err = classify({"index": 2, "ActionError": {"kind": {"FunctionCallError": {"ExecutionError": "boom"}}}})
    assert err.kind == "ExecutionError"
    assert err.message == "boom"
    assert err.path == ("ActionError", "FunctionCallError", "ExecutionError")
    assert err.details["index"] == 2


def test_action_error_index_inside_tagged_level():
    err = classify(
        {"ActionError": {"index": 0, "kind": {"AccountDoesNotExist": {"account_id": "ghost.testnet"}}}}
    )
    assert err.kind == ErrorKind.ACCOUNT_DOES_NOT_EXIST
    assert err.details == {"index": 0, "account_id": "ghost.testnet"}
    assert "ghost.testnet" in err.message
    assert "action #0" in str(err)


def test_invalid_nonce_template_is_filled():
    err = classify({"TxExecutionError": {"InvalidTxError": {"InvalidNonce": {"tx_nonce": 5, "ak_nonce": 6}}}})
    assert err.kind == "InvalidNonce"
    assert err.message == "Transaction nonce 5 must be larger than nonce of the used access key 6"


def test_unit_variant_string():
    err = classify({"InvalidTxError": "Expired"})
    assert err.kind == ErrorKind.EXPIRED
    assert err.path == ("InvalidTxError", "Expired")
    assert err.message == "Transaction has expired"


def test_unknown_leaf_without_template_dumps_fields():
    err = classify({"SomethingNew": {"b": 2, "a": 1}})
    assert err.kind == "SomethingNew"
    assert err.message == '{"a":1,"b":2}'


def test_opaque_strings():
    assert classify("query has timed out").kind == "TimeoutError"
    assert classify("Timeout").kind == "TimeoutError"
    assert classify("account bob.testnet does not exist while viewing").kind == "AccountDoesNotExist"
    assert classify("access key ed25519:abc does not exist while viewing").kind == "AccessKeyDoesNotExist"
    assert classify("the node said NotEnoughBalance here").kind == "NotEnoughBalance"
    err = classify("something odd")
    assert err.kind == "UntypedError"
    assert err.message == "something odd"


def test_error_kind_from_message_patterns():
    msg = "Transaction nonce 7 must be larger than nonce of the used access key 9"
    assert error_kind_from_message(msg) == "InvalidNonce"
    assert (
        error_kind_from_message(
            "wasm execution failed with error: FunctionCallError(CompilationError(CodeDoesNotExist { account_id: \"x\" }))"
        )
        == "CodeDoesNotExist"
    )
    assert error_kind_from_message("no match") == "UntypedError"


def test_non_mapping_payloads_are_untyped():
    for payload in (None, 42, [1, 2]):
        err = classify(payload)
        assert err.kind == "UntypedError"


def test_depth_guard():
    node = {"Leaf": "x"}
    for i in range(MAX_ERROR_DEPTH + 5):
        node = {f"Level{i}": node}
    err = classify(node)
    assert err.kind == "UntypedError"
    assert "nesting exceeds" in err.message


def test_classify_rpc_error_with_structured_data():
    err = classify_rpc_error(
        {"code": -32000, "message": "Server error", "data": {"TxExecutionError": {"InvalidTxError": "Expired"}}},
        method="broadcast_tx_commit",
    )
    assert err.kind == "Expired"
    assert err.code == -32000
    assert err.details["method"] == "broadcast_tx_commit"


def test_classify_rpc_error_with_string_data():
    err = classify_rpc_error({"code": -32000, "message": "Server error", "data": "Timeout"})
    assert err.kind == "TimeoutError"
    assert err.message == "[-32000] Server error: Timeout"

    err = classify_rpc_error(
        {"code": -32000, "message": "Server error", "data": "account ghost.testnet does not exist while viewing"}
    )
    assert err.kind == "AccountDoesNotExist"


def test_classify_query_error():
    err = classify_query_error(
        {"error": "access key ed25519:abc does not exist while viewing", "logs": []},
        "access_key/alice.testnet",
    )
    assert err.kind == "AccessKeyDoesNotExist"
    assert err.message.startswith("Querying access_key/alice.testnet failed:")


def test_format_error_message_leaves_missing_placeholders():
    assert format_error_message("NotEnoughBalance", {"signer_id": "a"}) == (
        "Sender a does not have enough balance {balance} for operation costing {cost}"
    )
    assert format_error_message("NoSuchKind", {}) is None


def test_str_renders_kind_path_and_context():
    err = classify({"ActionError": {"index": 1, "kind": {"FunctionCallError": {"ExecutionError": "boom"}}}})
    err.with_context("HASH")
    text = str(err)
    assert text.startswith("[ExecutionError] at ActionError.FunctionCallError.ExecutionError")
    assert "tx=HASH" in text
    assert text.endswith(": boom")
