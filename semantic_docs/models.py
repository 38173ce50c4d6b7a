from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    query: str = Field(..., max_length=500, description="Search query text")
    limit: Optional[int] = Field(None, description="Maximum number of results to return (clamped to 1..20)")


class SearchResult(BaseModel):
    content: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    results: List[SearchResult]
    count: int
    query: str


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None

    def body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
