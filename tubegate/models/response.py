from typing import List, Optional

from pydantic import BaseModel


class FlatMediaResponse(BaseModel):
    """Legacy flat response"""
    status: bool = True
    creator: str
    title: str
    dl: str
    thumb: Optional[str] = None
    duration: int = 0
    size: Optional[int] = None
    format: str


class NestedResult(BaseModel):
    quality: str
    duration: str
    title: str
    thumbnail: Optional[str] = None
    download_url: str


class NestedMediaResponse(BaseModel):
    status: int = 200
    success: bool = True
    creator: str
    result: NestedResult


class FlatErrorResponse(BaseModel):
    status: bool = False
    creator: str
    error: str


class NestedErrorResponse(BaseModel):
    status: int
    success: bool = False
    creator: str
    error: str


class SearchDuration(BaseModel):
    seconds: int
    timestamp: str


class SearchAuthor(BaseModel):
    name: str
    url: Optional[str] = None


class SearchResult(BaseModel):
    """Single search result"""
    videoId: str
    title: str
    url: str
    thumbnail: Optional[str] = None
    duration: Optional[SearchDuration] = None
    views: Optional[int] = None
    author: Optional[SearchAuthor] = None


class SearchResponse(BaseModel):
    """Search results response"""
    status: bool = True
    creator: str
    query: str
    results: List[SearchResult]
    count: int


class HealthResponse(BaseModel):
    status: bool = True
    message: str
    creator: str
