"""
Explicit application-state store.

Every mutation goes through ``DataStore.dispatch``. A command is first reduced
against the current snapshot (pure, no I/O), the resulting change set is written
in one database transaction, and only after commit does the store swap in the new
snapshot. A failed write leaves the snapshot untouched and raises PersistenceError.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from textile_ledger.core.exceptions import LedgerValidationError, PersistenceError
from textile_ledger.logger_config import logger
from textile_ledger.models.document import Counter, Document
from textile_ledger.schemas.state import (
    COLLECTION_MODELS,
    SEQUENCE_COUNTERS,
    TRANSACTIONAL_COLLECTIONS,
    AddEntity,
    AppState,
    BatchUpdate,
    Command,
    DeleteEntity,
    HardResetTransactions,
    RestoreState,
    UpdateEntity,
    attribute_for,
)


_command_adapter = TypeAdapter(Command)

BALE_COUNTER_PREFIX = "nextBaleNumber:"


@dataclass
class Change:
    kind: str  # put | delete | clear | counter | clear_counters
    entity: Optional[str] = None
    doc_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    value: Optional[int] = None


@dataclass
class Reduction:
    state: AppState
    changes: List[Change] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


# ==================== REDUCER ====================

def _aliased(entity: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept snake_case or camelCase keys, return camelCase."""
    fields = COLLECTION_MODELS[entity].model_fields
    out = {}
    for key, value in data.items():
        info = fields.get(key)
        out[(info.alias or key) if info else key] = value
    return out


class _Working:
    """Copy-on-write view over an AppState used while reducing one command."""

    def __init__(self, state: AppState):
        self.base = state
        self.collections: Dict[str, list] = {}
        self.counters: Optional[Dict[str, int]] = None

    def rows(self, entity: str) -> list:
        if entity not in self.collections:
            self.collections[entity] = list(self.base.collection(entity))
        return self.collections[entity]

    def build(self) -> AppState:
        update = {attribute_for(entity): rows for entity, rows in self.collections.items()}
        if self.counters is not None:
            update["counters"] = self.counters
        return self.base.model_copy(update=update)


def _apply_action(work: _Working, action, result: Reduction) -> None:
    entity = action.entity
    model_cls = COLLECTION_MODELS[entity]
    rows = work.rows(entity)

    if isinstance(action, AddEntity):
        doc = model_cls.model_validate(action.data)
        for index, existing in enumerate(rows):
            if existing.id == doc.id:
                rows[index] = doc
                break
        else:
            rows.append(doc)
        result.changes.append(Change("put", entity, doc.id, doc.to_document()))

    elif isinstance(action, UpdateEntity):
        doc_id = action.data["id"]
        for index, existing in enumerate(rows):
            if existing.id == doc_id:
                merged = existing.to_document()
                merged.update(_aliased(entity, action.data))
                doc = model_cls.model_validate(merged)
                rows[index] = doc
                result.changes.append(Change("put", entity, doc.id, doc.to_document()))
                break
        else:
            result.missing.append(f"{entity}/{doc_id}")

    elif isinstance(action, DeleteEntity):
        remaining = [row for row in rows if row.id != action.id]
        if len(remaining) == len(rows):
            result.missing.append(f"{entity}/{action.id}")
        else:
            rows[:] = remaining
            result.changes.append(Change("delete", entity, action.id))


def apply_command(state: AppState, command) -> Reduction:
    """Reduce one command against ``state``. Raises LedgerValidationError on bad data."""
    work = _Working(state)
    result = Reduction(state=state)
    try:
        if isinstance(command, (AddEntity, UpdateEntity, DeleteEntity)):
            _apply_action(work, command, result)

        elif isinstance(command, BatchUpdate):
            for action in command.actions:
                _apply_action(work, action, result)

        elif isinstance(command, RestoreState):
            restored = AppState.model_validate(command.snapshot)
            result.changes.append(Change("clear"))
            result.changes.append(Change("clear_counters"))
            for entity in COLLECTION_MODELS:
                for doc in restored.collection(entity):
                    result.changes.append(Change("put", entity, doc.id, doc.to_document()))
            for name, value in restored.counters.items():
                result.changes.append(Change("counter", doc_id=name, value=value))
            result.state = restored
            return result

        elif isinstance(command, HardResetTransactions):
            for entity in TRANSACTIONAL_COLLECTIONS:
                work.collections[entity] = []
                result.changes.append(Change("clear", entity))
            counters = {
                name: value for name, value in state.counters.items()
                if not name.startswith(BALE_COUNTER_PREFIX)
            }
            for name in SEQUENCE_COUNTERS:
                counters[name] = 1
            work.counters = counters
            result.changes.append(Change("clear_counters"))
            for name, value in counters.items():
                result.changes.append(Change("counter", doc_id=name, value=value))
            work.rows("items")
            for index, item in enumerate(work.collections["items"]):
                if item.next_bale_number is not None:
                    item = item.model_copy(update={"next_bale_number": None})
                    work.collections["items"][index] = item
                    result.changes.append(Change("put", "items", item.id, item.to_document()))

        else:
            raise LedgerValidationError(f"Unsupported command: {command!r}")

    except ValidationError as e:
        raise LedgerValidationError(str(e)) from e

    result.state = work.build()
    return result


# ==================== STORE ====================

class DataStore:
    """
    Single source of truth for application state.

    ``state`` is a snapshot; readers holding it keep a consistent view while
    writers swap in a new one.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._lock = threading.RLock()
        self._state = AppState()

    @property
    def state(self) -> AppState:
        return self._state

    def load(self) -> AppState:
        """Read every stored document into a fresh snapshot."""
        session = self._session_factory()
        try:
            grouped: Dict[str, list] = {entity: [] for entity in COLLECTION_MODELS}
            for doc in session.query(Document).all():
                if doc.collection not in grouped:
                    logger.warning(f"Skipping document {doc.id} in unknown collection {doc.collection}")
                    continue
                grouped[doc.collection].append(COLLECTION_MODELS[doc.collection].model_validate(doc.data))
            counters = {row.name: row.value for row in session.query(Counter).all()}
        except SQLAlchemyError as e:
            logger.exception("Failed to load application state")
            raise PersistenceError(f"Failed to load application state: {e}") from e
        finally:
            session.close()

        state = AppState(counters=counters, **{attribute_for(k): v for k, v in grouped.items()})
        with self._lock:
            self._state = state
        logger.info(
            f"Loaded state: {len(state.journal_entries)} journal entries, "
            f"{len(state.original_purchases)} purchases, {len(state.sales_invoices)} invoices"
        )
        return state

    def dispatch(self, command: Union[Dict[str, Any], Any]) -> AppState:
        if isinstance(command, dict):
            try:
                command = _command_adapter.validate_python(command)
            except ValidationError as e:
                raise LedgerValidationError(str(e)) from e

        with self._lock:
            result = apply_command(self._state, command)
            for missing in result.missing:
                logger.warning(f"{command.type}: document {missing} not found, action skipped")
            self._write(result.changes, command.type)
            self._state = result.state

        logger.debug(f"{command.type} applied with {len(result.changes)} change(s)")
        return result.state

    def allocate(self, name: str, count: int = 1, seed: Optional[int] = None) -> int:
        """Increment-and-fetch: reserve ``count`` consecutive values and return the first."""
        if count < 1:
            raise LedgerValidationError("Counter allocation must reserve at least one value")
        with self._lock:
            first = self._state.counters.get(name, seed if seed is not None else 1)
            counters = dict(self._state.counters)
            counters[name] = first + count
            self._write([Change("counter", doc_id=name, value=first + count)], "ALLOCATE")
            self._state = self._state.model_copy(update={"counters": counters})
        logger.debug(f"Allocated {name} {first}..{first + count - 1}")
        return first

    def _write(self, changes: List[Change], command_type: str) -> None:
        if not changes:
            return
        session = self._session_factory()
        try:
            for change in changes:
                if change.kind == "put":
                    session.merge(Document(collection=change.entity, id=change.doc_id, data=change.data))
                elif change.kind == "delete":
                    session.query(Document).filter(
                        Document.collection == change.entity, Document.id == change.doc_id
                    ).delete(synchronize_session=False)
                elif change.kind == "clear":
                    query = session.query(Document)
                    if change.entity:
                        query = query.filter(Document.collection == change.entity)
                    query.delete(synchronize_session=False)
                elif change.kind == "clear_counters":
                    session.query(Counter).delete(synchronize_session=False)
                elif change.kind == "counter":
                    session.merge(Counter(name=change.doc_id, value=change.value))
                # flush in order so a clear followed by puts of the same keys is sequenced
                session.flush()
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Persistence failure while applying {command_type}: {e}")
            raise PersistenceError(
                f"Could not save changes ({command_type}). Please resubmit.", command_type
            ) from e
        finally:
            session.close()


def entity_counts(state: AppState) -> Dict[str, int]:
    return {entity: len(state.collection(entity)) for entity in COLLECTION_MODELS}
