"""
Grocery list related models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, timezone


class GroceryItem(BaseModel):
    """One shoppable line from the user's list."""
    raw: str
    name: str
    category: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None

    @property
    def search_query(self) -> str:
        return self.name.strip()


class ParsedGroceryList(BaseModel):
    """Ordered items parsed from the raw list text."""
    items: List[GroceryItem]
    original_input: str
    cleaned_with_ai: bool = False
    parsed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
