from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every domain error response."""
    code: str = Field(..., description="Stable machine-readable error kind")
    detail: str = Field(..., description="Human-readable message")


class PageMeta(BaseModel):
    total: int
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., alias="totalPages")

    class Config:
        populate_by_name = True
