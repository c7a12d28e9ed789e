"""
Transactions: actions, Borsh encoding, signing, outcome shaping.
"""

from . import actions
from .build import SignedTransaction, Transaction, create_transaction, sign_transaction
from .encode import serialize_signed_transaction, serialize_transaction, transaction_hash
from .send import (
    Outcome,
    ReceiptReport,
    emit_receipt_reports,
    flatten_receipt_reports,
    get_transaction_last_result,
    parse_result_error,
)

__all__ = [
    "actions",
    "Transaction",
    "SignedTransaction",
    "create_transaction",
    "sign_transaction",
    "serialize_transaction",
    "serialize_signed_transaction",
    "transaction_hash",
    "Outcome",
    "ReceiptReport",
    "flatten_receipt_reports",
    "emit_receipt_reports",
    "parse_result_error",
    "get_transaction_last_result",
]
