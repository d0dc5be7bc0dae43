from enum import Enum
from typing import List, Optional

from fastapi.responses import JSONResponse

from tubegate.core.errors import GatewayError
from tubegate.models.internal import MediaResult, SearchRecord
from tubegate.models.response import (
    FlatErrorResponse,
    FlatMediaResponse,
    NestedErrorResponse,
    NestedMediaResponse,
    NestedResult,
    SearchAuthor,
    SearchDuration,
    SearchResponse,
    SearchResult,
)
from tubegate.services.format import FormatDecision
from tubegate.utils.duration import format_duration


class ResponseShape(Enum):
    FLAT = "flat"
    NESTED = "nested"


def to_flat(result: MediaResult, creator: str) -> FlatMediaResponse:
    return FlatMediaResponse(
        creator=creator,
        title=result.metadata.title,
        dl=result.download_url,
        thumb=result.metadata.thumbnail_url,
        duration=result.metadata.duration_seconds,
        size=result.size_bytes,
        format=result.kind.ext,
    )


def to_nested(result: MediaResult, creator: str) -> NestedMediaResponse:
    return NestedMediaResponse(
        creator=creator,
        result=NestedResult(
            quality=FormatDecision.quality_label(result.kind),
            duration=format_duration(result.metadata.duration_seconds),
            title=result.metadata.title,
            thumbnail=result.metadata.thumbnail_url,
            download_url=result.download_url,
        ),
    )


def render_result(result: MediaResult, shape: ResponseShape, creator: str) -> JSONResponse:
    body = to_flat(result, creator) if shape is ResponseShape.FLAT else to_nested(result, creator)
    return JSONResponse(body.model_dump())


def error_body(status_code: int, message: str, shape: ResponseShape, creator: str) -> dict:
    if shape is ResponseShape.NESTED:
        return NestedErrorResponse(status=status_code, creator=creator, error=message).model_dump()
    return FlatErrorResponse(creator=creator, error=message).model_dump()


def render_error(
    error: GatewayError,
    shape: ResponseShape,
    creator: str,
    locale: Optional[str] = None
) -> JSONResponse:
    return JSONResponse(
        error_body(error.status_code, error.render(locale), shape, creator),
        status_code=error.status_code,
    )


def to_search_result(record: SearchRecord) -> SearchResult:
    duration = None
    if record.duration_seconds is not None:
        duration = SearchDuration(
            seconds=record.duration_seconds,
            timestamp=format_duration(record.duration_seconds),
        )

    author = None
    if record.author_name:
        author = SearchAuthor(name=record.author_name, url=record.author_url)

    return SearchResult(
        videoId=record.video_id,
        title=record.title,
        url=record.url,
        thumbnail=record.thumbnail,
        duration=duration,
        views=record.views,
        author=author,
    )


def render_search(query: str, records: List[SearchRecord], creator: str) -> JSONResponse:
    results = [to_search_result(r) for r in records]
    body = SearchResponse(creator=creator, query=query, results=results, count=len(results))
    return JSONResponse(body.model_dump())
