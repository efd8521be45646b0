from typing import Any, Dict, List, Optional

from textile_ledger.schemas.common import CamelModel


class OperationResult(CamelModel):
    """Outcome of a business operation. Warnings never block the operation."""
    document_id: Optional[str] = None
    voucher_ids: List[str] = []
    entry_ids: List[str] = []
    warnings: List[str] = []
    data: Optional[Any] = None


class CorrectionResult(CamelModel):
    source_id: str
    deleted: Dict[str, List[str]] = {}
    updated: Dict[str, List[str]] = {}
    warnings: List[str] = []

    @property
    def dependents_found(self) -> int:
        total = sum(len(ids) for ids in self.deleted.values())
        total += sum(len(ids) for ids in self.updated.values())
        return total
