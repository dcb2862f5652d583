from typing import List

from pydantic import BaseModel, Field, field_validator


MAX_DRIVERS = 5


class DriverSet(BaseModel):
    drivers: List[str] = Field(..., min_length=1, description="3-5 key factors that could move the outcome")
    reasoning: str = ""

    @field_validator("drivers")
    @classmethod
    def _clean(cls, v: List[str]) -> List[str]:
        return [d.strip() for d in v if d.strip()][:MAX_DRIVERS]
