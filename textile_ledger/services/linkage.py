"""
Locating records derived from a source document.

New journal entries carry ``source_document_id``. Older data only links through the
voucher naming convention, and some of it not even that, so lookups go:

1. ``source_document_id`` equal to one of the candidate ids,
2. voucher id equal to a conventional voucher for a candidate,
3. only when both find nothing: a token-bounded substring match on voucher id,
   entry id or description, over entries that carry no source document.
"""

import re
from typing import Iterable, List, Optional, Set, Tuple

from textile_ledger.schemas.journal import JournalEntry
from textile_ledger.schemas.state import AppState, DeleteEntity, add, delete


VOUCHER_PATTERNS = ("{}", "JV-{}", "JV-FGP-{}", "COGS-{}", "AUTO-OPEN-{}")
PRODUCTION_PATTERNS = ("prod_deduct_{}", "prod_open_stock_{}")
BUNDLE_PRODUCTION_PREFIX = "prod_fgp_{}_"
OPENING_ID_PREFIX = "oo_"


def candidate_ids(source_id: str, transaction_id: Optional[str] = None) -> List[str]:
    """The source id plus the legacy variants it may have been recorded under."""
    ids = [source_id]
    if transaction_id and transaction_id not in ids:
        ids.append(transaction_id)
    if source_id.startswith(OPENING_ID_PREFIX):
        stripped = source_id[len(OPENING_ID_PREFIX):]
        if stripped and stripped not in ids:
            ids.append(stripped)
    return ids


def conventional_vouchers(candidates: Iterable[str]) -> Set[str]:
    return {pattern.format(c) for c in candidates for pattern in VOUCHER_PATTERNS}


def _token_pattern(candidate: str) -> "re.Pattern":
    return re.compile(rf"(?<![A-Za-z0-9]){re.escape(candidate)}(?![A-Za-z0-9])")


def find_journal_entries(
    state: AppState,
    candidates: List[str],
    allow_fallback: bool = True,
) -> Tuple[List[JournalEntry], bool]:
    """Return (entries, used_fallback)."""
    ids = set(candidates)
    vouchers = conventional_vouchers(candidates)
    matched = [
        entry for entry in state.journal_entries
        if entry.source_document_id in ids or entry.voucher_id in vouchers
    ]
    if matched or not allow_fallback:
        return matched, False

    patterns = [_token_pattern(c) for c in candidates]
    # entries that name their own source document belong to that document only
    fallback = [
        entry for entry in state.journal_entries
        if entry.source_document_id is None
        and any(
            p.search(entry.voucher_id) or p.search(entry.id) or p.search(entry.description or "")
            for p in patterns
        )
    ]
    return fallback, bool(fallback)


def find_productions(state: AppState, candidates: List[str], bundle: bool = False) -> List[str]:
    exact = {pattern.format(c) for c in candidates for pattern in PRODUCTION_PATTERNS}
    prefixes = tuple(BUNDLE_PRODUCTION_PREFIX.format(c) for c in candidates) if bundle else ()
    return [
        p.id for p in state.productions
        if p.id in exact or (prefixes and p.id.startswith(prefixes))
    ]


def overwrite_entries(existing: Iterable[JournalEntry], regenerated: List[JournalEntry]) -> list:
    """Actions that replace ``existing`` with ``regenerated``, deleting stale ids."""
    keep = {entry.id for entry in regenerated}
    actions = [add("journalEntries", entry) for entry in regenerated]
    actions += [delete("journalEntries", entry.id) for entry in existing if entry.id not in keep]
    return actions


def dedupe(actions: list) -> list:
    """Drop repeated deletes of the same document, keeping first occurrence order."""
    seen = set()
    out = []
    for action in actions:
        if isinstance(action, DeleteEntity):
            key = (action.entity, action.id)
            if key in seen:
                continue
            seen.add(key)
        out.append(action)
    return out
