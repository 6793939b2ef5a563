from typing import Any

from fastapi import HTTPException

from codesensei.services.pipeline_runtime import PipelineFailure, format_pipeline_error_detail


KNOWN_ERROR_CODES = {
    "invalid_request",
    "unauthorized",
    "not_found",
    "rate_limited",
    "timeout",
    "schema_mismatch",
    "config_error",
    "empty_output",
    "provider_error",
    "execution_error",
    "db_error",
    "unknown",
}

RETRYABLE_ERROR_CODES = {
    "rate_limited",
    "timeout",
    "schema_mismatch",
}

_STATUS_CODE_ERRORS = {
    400: "invalid_request",
    401: "unauthorized",
    404: "not_found",
    413: "invalid_request",
    422: "invalid_request",
    429: "rate_limited",
    502: "provider_error",
    503: "config_error",
    504: "timeout",
}

_DEFAULT_MESSAGES = {
    "invalid_request": "Malformed request",
    "unauthorized": "Invalid credentials",
    "not_found": "Resource not found",
    "rate_limited": "Too many requests, please try again later.",
    "timeout": "Upstream request timed out",
    "schema_mismatch": "AI response schema mismatch",
    "config_error": "Service configuration error",
    "empty_output": "AI returned empty content",
    "provider_error": "Upstream provider request failed",
    "execution_error": "Code execution failed",
    "db_error": "Failed to persist result",
    "unknown": "Request failed",
}


def normalize_error_code(value: Any) -> str:
    raw = str(value or "").strip().lower()
    if raw in KNOWN_ERROR_CODES:
        return raw
    return "unknown"


def error_code_for_status(status_code: int) -> str:
    return _STATUS_CODE_ERRORS.get(int(status_code), "unknown")


def _build_message(code: str, reason: str) -> str:
    message = " ".join(str(reason or "").split()).strip()
    if message:
        return message[:260]
    return _DEFAULT_MESSAGES.get(code, "Request failed")


def build_structured_error_detail(
    *,
    error_code: str,
    message: str | None = None,
    retryable: bool | None = None,
    detail: Any = None,
) -> dict[str, Any]:
    code = normalize_error_code(error_code)
    message_text = " ".join(str(message or "").split()).strip()
    if not message_text:
        message_text = _build_message(code, str(detail or ""))
    if retryable is None:
        retryable = code in RETRYABLE_ERROR_CODES

    legacy_detail = " ".join(str(detail or "").split()).strip()
    if not legacy_detail:
        legacy_detail = message_text

    return {
        "error_code": code,
        "message": message_text[:260],
        "retryable": bool(retryable),
        "detail": legacy_detail,
    }


def _payload_from_detail_dict(detail: dict[str, Any], status_code: int) -> tuple[str, str, bool, str]:
    code = normalize_error_code(detail.get("error_code"))
    if code == "unknown":
        code = error_code_for_status(status_code)
    message = " ".join(str(detail.get("message") or "").split()).strip()
    if not message:
        message = _build_message(code, detail.get("detail") or "")
    retryable = bool(detail.get("retryable")) if "retryable" in detail else code in RETRYABLE_ERROR_CODES
    legacy_detail = str(detail.get("detail") or "").strip() or message
    return code, message[:260], retryable, legacy_detail


def build_http_error_payload(exc: HTTPException, trace_id: str) -> dict[str, Any]:
    detail = exc.detail

    if isinstance(detail, dict):
        code, message, retryable, legacy_detail = _payload_from_detail_dict(detail, exc.status_code)
    else:
        code = error_code_for_status(exc.status_code)
        message = _build_message(code, str(detail or ""))
        retryable = code in RETRYABLE_ERROR_CODES
        legacy_detail = message

    return {
        "error_code": code,
        "message": message,
        # 프런트엔드는 error 필드를 읽는다.
        "error": message,
        "retryable": retryable,
        "trace_id": trace_id,
        "detail": legacy_detail,
    }


def build_validation_error_payload(errors: list[dict[str, Any]], trace_id: str) -> dict[str, Any]:
    fields = []
    for item in errors:
        loc = [str(part) for part in item.get("loc", ()) if part not in ("body", "query")]
        if loc:
            fields.append(".".join(loc))
    message = "Missing or invalid fields: " + ", ".join(fields) if fields else _DEFAULT_MESSAGES["invalid_request"]
    return {
        "error_code": "invalid_request",
        "message": message[:260],
        "error": message[:260],
        "retryable": False,
        "trace_id": trace_id,
        "detail": "request_validation_failed",
    }


def build_unexpected_error_payload(trace_id: str) -> dict[str, Any]:
    return {
        "error_code": "unknown",
        "message": "Unexpected server error",
        "error": "Unexpected server error",
        "retryable": False,
        "trace_id": trace_id,
        "detail": "unexpected_server_error",
    }


def pipeline_http_exception(failure: PipelineFailure) -> HTTPException:
    return HTTPException(
        status_code=failure.status_code,
        detail=build_structured_error_detail(
            error_code=failure.kind,
            message=failure.reason,
            retryable=failure.retryable,
            detail=format_pipeline_error_detail(failure.pipeline, failure.kind, failure.reason),
        ),
    )
