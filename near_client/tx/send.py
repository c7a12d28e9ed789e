"""
near_client.tx.send
===================

Shaping of `broadcast_tx_commit` / `tx` results.

Primary entry points
--------------------
- flatten_receipt_reports(outcome_json) -> list[ReceiptReport]
    Walks the transaction outcome and every receipt outcome, keeping the
    ones that logged something or failed (failures are classified).

- emit_receipt_reports(receiver_id, reports)
    Writes the reports to the logger unless NEAR_NO_LOGS is set.

- parse_result_error(outcome_json) -> TypedError
    Classifies the top-level `status.Failure` and tags it with the tx id.

- Outcome.from_json(outcome_json)
    Small typed view over the raw result dict; `raw` keeps the original.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import TypedError
from ..logging import logs_enabled
from ..rpc.classify import classify
from ..utils.encoding import b64decode

log = logging.getLogger(__name__)

__all__ = [
    "ReceiptReport",
    "Outcome",
    "flatten_receipt_reports",
    "emit_receipt_reports",
    "parse_result_error",
    "get_transaction_last_result",
    "status_name",
]


@dataclass(frozen=True)
class ReceiptReport:
    receipt_ids: Tuple[str, ...]
    logs: Tuple[str, ...]
    failure: Optional[TypedError] = None


def status_name(status: Any) -> str:
    """Collapse an execution status to Success / Failure / Unknown / Started."""
    if isinstance(status, Mapping):
        if "Failure" in status:
            return "Failure"
        if "SuccessValue" in status or "SuccessReceiptId" in status:
            return "Success"
        if "Started" in status:
            return "Started"
        return "Unknown"
    if status in ("Started", "NotStarted"):
        return "Started"
    return "Unknown"


def _transaction_id(outcome_json: Mapping[str, Any]) -> Optional[str]:
    tx_outcome = outcome_json.get("transaction_outcome") or {}
    tx = outcome_json.get("transaction") or {}
    return tx_outcome.get("id") or tx.get("hash")


@dataclass
class Outcome:
    transaction_hash: Optional[str]
    status: str
    receipt_reports: List[ReceiptReport] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_json(
        cls, outcome_json: Mapping[str, Any], receipt_reports: Optional[List[ReceiptReport]] = None
    ) -> "Outcome":
        if receipt_reports is None:
            receipt_reports = flatten_receipt_reports(outcome_json)
        return cls(
            transaction_hash=_transaction_id(outcome_json),
            status=status_name(outcome_json.get("status")),
            receipt_reports=list(receipt_reports),
            raw=dict(outcome_json),
        )

    @property
    def succeeded(self) -> bool:
        return self.status == "Success"

    @property
    def failure(self) -> Optional[Any]:
        status = self.raw.get("status")
        if isinstance(status, Mapping):
            return status.get("Failure")
        return None

    def last_result(self) -> Any:
        return get_transaction_last_result(self.raw)


def flatten_receipt_reports(outcome_json: Mapping[str, Any]) -> List[ReceiptReport]:
    outcomes = [outcome_json.get("transaction_outcome") or {}, *(outcome_json.get("receipts_outcome") or [])]
    reports: List[ReceiptReport] = []
    for item in outcomes:
        inner = item.get("outcome") or {}
        status = inner.get("status")
        failure = None
        if isinstance(status, Mapping) and "Failure" in status:
            failure = classify(status["Failure"])
        logs = tuple(inner.get("logs") or ())
        if logs or failure is not None:
            reports.append(ReceiptReport(tuple(inner.get("receipt_ids") or ()), logs, failure))
    return reports


def emit_receipt_reports(receiver_id: str, reports: List[ReceiptReport]) -> None:
    if not logs_enabled():
        return
    for report in reports:
        ids = report.receipt_ids
        log.info("Receipt%s: %s", "s" if len(ids) > 1 else "", ", ".join(ids))
        for line in report.logs:
            log.info("\tLog [%s]: %s", receiver_id, line)
        if report.failure is not None:
            log.warning("\tFailure [%s]: %s", receiver_id, report.failure)


def parse_result_error(outcome_json: Mapping[str, Any]) -> TypedError:
    status = outcome_json.get("status") or {}
    err = classify(status.get("Failure") if isinstance(status, Mapping) else status)
    tx_id = _transaction_id(outcome_json)
    if tx_id:
        err.with_context(tx_id)
    return err


def get_transaction_last_result(outcome_json: Mapping[str, Any]) -> Any:
    """
    Decode `status.SuccessValue`: JSON when it parses, else the raw text.
    None when the transaction did not end with a value.
    """
    status = outcome_json.get("status")
    if not isinstance(status, Mapping) or not isinstance(status.get("SuccessValue"), str):
        return None
    text = b64decode(status["SuccessValue"]).decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text
