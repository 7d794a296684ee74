from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every non-2xx answer. `code` is the stable HubError kind."""
    code: str
    message: str
    details: list[dict[str, Any]] = Field(default_factory=list)
