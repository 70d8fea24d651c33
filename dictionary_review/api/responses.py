from typing import TypeVar

from fastapi import HTTPException, status

from dictionary_review.services.results import OperationResult

T = TypeVar("T")

STATUS_BY_ERROR_KIND: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "permission_denied": status.HTTP_403_FORBIDDEN,
    "self_vote": status.HTTP_403_FORBIDDEN,
    "already_voted": status.HTTP_409_CONFLICT,
    "invalid_state_for_operation": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_422_UNPROCESSABLE_CONTENT,
    "apply_conflict": status.HTTP_409_CONFLICT,
    "already_applied": status.HTTP_409_CONFLICT,
    "conflict": status.HTTP_409_CONFLICT,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def unwrap_or_raise(result: OperationResult[T]) -> T:
    if result.success:
        return result.value  # type: ignore[return-value]
    error_kind = result.error_kind or "conflict"
    raise HTTPException(
        status_code=STATUS_BY_ERROR_KIND.get(error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"error_kind": error_kind, "message": result.message},
    )
