"""
API request/response models.
"""

from pydantic import BaseModel, validator
from typing import Optional


class StartRunRequest(BaseModel):
    shopping_list: str
    clean_with_ai: bool = False

    @validator("shopping_list")
    def check_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Shopping list cannot be empty.")
        return v


class StartRunResponse(BaseModel):
    run_id: str
    status: str = "accepted"


class APIError(BaseModel):
    """Structured API error response."""
    error_code: str
    error_message: str
    run_id: Optional[str] = None
