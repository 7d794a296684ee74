from decimal import Decimal

from pydantic import BaseModel, Field


class SearchIntentIn(BaseModel):
    user_input: str = Field(min_length=1, max_length=2_000)
    session_id: str | None = Field(default=None, max_length=120)


class SearchIntentOut(BaseModel):
    id: str
    status: str
    parsed_filters: dict | None = None
    confidence: Decimal | None = None
