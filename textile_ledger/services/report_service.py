"""Ledger reports derived from journal entries."""

from collections import defaultdict
from datetime import date as Date
from typing import Dict, List, Optional

from textile_ledger.schemas.journal import JournalEntry
from textile_ledger.schemas.state import AppState
from textile_ledger.services.journal_service import unbalanced_vouchers, voucher_totals


def _in_range(entry: JournalEntry, start: Optional[Date], end: Optional[Date]) -> bool:
    if start and entry.date < start:
        return False
    if end and entry.date > end:
        return False
    return True


def list_entries(
    state: AppState,
    voucher_id: Optional[str] = None,
    account_id: Optional[str] = None,
    entity_id: Optional[str] = None,
    start: Optional[Date] = None,
    end: Optional[Date] = None,
) -> List[JournalEntry]:
    rows = [e for e in state.journal_entries if _in_range(e, start, end)]
    if voucher_id:
        rows = [e for e in rows if e.voucher_id == voucher_id]
    if account_id:
        rows = [e for e in rows if e.account_id == account_id]
    if entity_id:
        rows = [e for e in rows if e.entity_id == entity_id]
    return sorted(rows, key=lambda e: (e.date, e.voucher_id, e.id))


def trial_balance(state: AppState, end: Optional[Date] = None) -> dict:
    """Per-account debit and credit totals up to ``end``; total debits equal total credits."""
    debits: Dict[str, float] = defaultdict(float)
    credits: Dict[str, float] = defaultdict(float)
    for entry in state.journal_entries:
        if not _in_range(entry, None, end):
            continue
        debits[entry.account_id] += entry.debit
        credits[entry.account_id] += entry.credit

    accounts = [
        {
            "account_id": account,
            "debit": round(debits[account], 2),
            "credit": round(credits[account], 2),
            "balance": round(debits[account] - credits[account], 2),
        }
        for account in sorted(set(debits) | set(credits))
    ]
    total_debit = sum(debits.values())
    total_credit = sum(credits.values())
    return {
        "accounts": accounts,
        "total_debit": round(total_debit, 2),
        "total_credit": round(total_credit, 2),
        "difference": round(total_debit - total_credit, 6),
    }


def entity_balance(state: AppState, entity_id: str, end: Optional[Date] = None) -> dict:
    """Running ledger of one party. Positive balance means the party owes us."""
    rows = list_entries(state, entity_id=entity_id, end=end)
    running = 0.0
    lines = []
    for entry in rows:
        running += entry.debit - entry.credit
        lines.append({
            "date": entry.date.isoformat(),
            "voucher_id": entry.voucher_id,
            "account_id": entry.account_id,
            "description": entry.description,
            "debit": entry.debit,
            "credit": entry.credit,
            "balance": round(running, 2),
        })
    return {"entity_id": entity_id, "balance": round(running, 2), "lines": lines}


def unbalanced_voucher_report(state: AppState) -> List[dict]:
    totals = voucher_totals(state.journal_entries)
    return [
        {
            "voucher_id": voucher,
            "debit": round(totals[voucher][0], 2),
            "credit": round(totals[voucher][1], 2),
            "difference": round(diff, 6),
        }
        for voucher, diff in sorted(unbalanced_vouchers(state.journal_entries).items())
    ]
