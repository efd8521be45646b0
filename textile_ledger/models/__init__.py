from textile_ledger.models.document import Counter, Document

__all__ = ["Counter", "Document"]
