from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class DateRange(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start: Optional[str] = None
    end: Optional[str] = None


class Filter(BaseModel):
    """Saved subscription filter. Every clause is optional; all must hold."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    tags: Optional[list[str]] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    source: Optional[str] = None
    date_range: Optional[DateRange] = Field(default=None, alias="dateRange")

    def to_storage(self) -> dict:
        """Dict form persisted as JSON on the subscription row."""
        return self.model_dump(by_alias=True, exclude_none=True)


class FilterStats(BaseModel):
    match_count: int = Field(serialization_alias="matchCount")
    total_count: int = Field(serialization_alias="totalCount")
    percentage: int
