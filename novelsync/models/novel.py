from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NovelMetadata(BaseModel):
    """Metadata returned by the provider for one novel.

    Field names follow the provider's JSON (``totalChaptersEstimate``) on input
    and are also accepted in snake_case.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str = Field(..., min_length=1)
    author: str = ""
    description: str = ""
    total_chapters_estimate: int = Field(0, alias="totalChaptersEstimate", ge=0)
    chapters: List[str] = Field(default_factory=list, description="Chapter titles in discovery order")
    sources: Optional[List[str]] = Field(None, description="Grounding source URLs, deduplicated")

    @field_validator("author", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("total_chapters_estimate", mode="before")
    @classmethod
    def _coerce_estimate(cls, v):
        if v is None or v == "":
            return 0
        try:
            return max(int(float(v)), 0)
        except (TypeError, ValueError):
            return 0

    @field_validator("chapters", mode="before")
    @classmethod
    def _clean_chapters(cls, v):
        if v is None:
            return []
        # Keep order, drop blanks; titles may come back as numbers
        return [str(x).strip() for x in v if x is not None and str(x).strip()]


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Novel title or free-form search text")
