from typing import Any, Dict

from textile_ledger.core.exceptions import LedgerValidationError
from textile_ledger.core.store import DataStore, entity_counts
from textile_ledger.logger_config import logger
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.state import HardResetTransactions, RestoreState, TRANSACTIONAL_COLLECTIONS


def export_snapshot(store: DataStore) -> Dict[str, Any]:
    """The full application state in the camelCase backup format."""
    snapshot = store.state.to_document()
    logger.info(f"Backup exported: {sum(entity_counts(store.state).values())} documents")
    return snapshot


def restore_snapshot(store: DataStore, snapshot: Dict[str, Any], confirm: bool = False) -> OperationResult:
    """Replace everything, counters included, with ``snapshot``."""
    if not confirm:
        raise LedgerValidationError("Restoring a backup overwrites all data; pass confirm=true to proceed")
    state = store.dispatch(RestoreState(snapshot=snapshot))
    counts = entity_counts(state)
    logger.warning(f"State restored from backup: {sum(counts.values())} documents")
    return OperationResult(data=counts)


def hard_reset(store: DataStore, confirm: bool = False) -> OperationResult:
    """Clear every transactional collection and restart sequence counters; setup data is kept."""
    if not confirm:
        raise LedgerValidationError("Hard reset deletes all transactions; pass confirm=true to proceed")
    before = entity_counts(store.state)
    store.dispatch(HardResetTransactions())
    cleared = {name: before[name] for name in TRANSACTIONAL_COLLECTIONS}
    logger.warning(f"Hard reset: cleared {sum(cleared.values())} transactional documents")
    return OperationResult(data=cleared)
