from pydantic import BaseModel, Field


class Narrative(BaseModel):
    markdown: str = Field(..., min_length=1, description="Narrative analysis sections in Markdown")
