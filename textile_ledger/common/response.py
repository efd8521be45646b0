from typing import Any, List, Optional, Union

from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.results import CorrectionResult, OperationResult


def send(data: Any = None, message: str = "Success", warnings: Optional[List[str]] = None) -> SuccessResponse:
    return SuccessResponse(message=message, data=data, warnings=warnings or [])


def from_result(result: Union[OperationResult, CorrectionResult], message: str) -> SuccessResponse:
    """Envelope a service result, lifting its warnings to the top level."""
    return SuccessResponse(message=message, data=result.to_document(), warnings=result.warnings)


def documents(rows: list) -> List[dict]:
    return [row.to_document() for row in rows]
