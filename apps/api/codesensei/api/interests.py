from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from codesensei.api.deps import get_topic_source
from codesensei.services.error_policy import build_structured_error_detail
from codesensei.services.normalizer_validator import normalize_topic
from codesensei.services.topics import TopicSource


router = APIRouter(prefix="/interests", tags=["interests"])


class InterestRequest(BaseModel):
    interest: str | None = None


@router.get("/topic")
def list_topics(topic_source: TopicSource = Depends(get_topic_source)) -> list[str]:
    return topic_source.list_topics()


@router.post("/topic")
def record_topic(payload: InterestRequest, topic_source: TopicSource = Depends(get_topic_source)) -> JSONResponse:
    topic = normalize_topic(payload.interest)
    if not topic:
        raise HTTPException(
            status_code=400,
            detail=build_structured_error_detail(error_code="invalid_request", message="No interest provided"),
        )
    if topic_source.record_topic(topic, strict=True):
        return JSONResponse(status_code=201, content={"message": "Topic added successfully"})
    return JSONResponse(status_code=200, content={"message": "Frequency updated successfully"})
