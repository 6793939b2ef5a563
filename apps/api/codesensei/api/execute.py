import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from codesensei.api.deps import enforce_rate_limit, get_execution_client
from codesensei.core.monitoring import timed
from codesensei.services.error_policy import build_structured_error_detail
from codesensei.services.execution import LANGUAGE_VERSIONS, ExecuteRequest, PistonClient, UnsupportedLanguageError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["execute"])


@router.post("/execute", dependencies=[Depends(enforce_rate_limit)])
def execute_code(payload: ExecuteRequest, client: PistonClient = Depends(get_execution_client)) -> dict[str, Any]:
    try:
        with timed("code_execute", language=payload.language):
            return client.execute(payload.language, payload.sourceCode, payload.stdin)
    except UnsupportedLanguageError as exc:
        raise HTTPException(
            status_code=400,
            detail=build_structured_error_detail(
                error_code="invalid_request",
                message=f"Unsupported language. Use one of: {', '.join(LANGUAGE_VERSIONS)}",
                detail=str(exc),
            ),
        ) from exc
    except RuntimeError as exc:
        logger.error("Code execution failed: %s", exc)
        raise HTTPException(
            status_code=502,
            detail=build_structured_error_detail(error_code="execution_error", detail=str(exc)),
        ) from exc
