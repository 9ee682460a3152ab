"""
Optional AI cleanup of the raw list text through a local Ollama model.

The cleaned text is only a suggestion: any failure falls back to the
unmodified list so a run is never blocked by the language model.
"""

import re
import logging
from difflib import SequenceMatcher
from typing import List, Literal, Optional

import ollama
from pydantic import BaseModel, Field

from .retry_utils import retry_with_backoff, RetryConfig, TransientError, PermanentError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

OLLAMA_MODEL = "qwen2.5:7b"
OLLAMA_HOST = "http://localhost:11434"
SERVICE = "ollama"

CLEANUP_SYSTEM_PROMPT = """You are a helpful grocery list assistant.
Clean up grocery lists by fixing typos, standardizing names, and removing duplicates.
Return only the cleaned list with no extra formatting or explanations."""

CLEANUP_PROMPT = """Clean up the following grocery list by:
1. Fixing typos and spelling mistakes
2. Standardizing item names (e.g., "Roma Tomatoes" -> "tomatoes")
3. Removing duplicate items
4. Keeping quantities, units, and notes intact
5. Preserving section headers like [Produce], [Dairy], etc. Or reformat it to [Category] format.
6. Removing item qualifiers like "large", "small", "extra large", etc. unless it is a description of eggs.
7. You can keep qualifiers like "frozen" or "organic".

If a list item has OR in it, pick the more popular/common item.
Examples: "Large Eggs OR Medium Eggs" -> "Large Eggs". "Chicken or Veg Broth" -> "Chicken Broth".

Return ONLY the cleaned list, one item per line, with the exact same format as the input.
Do not add explanations, comments, or markdown formatting.

The items should be cleaned so that the first item in a grocery store's online store
is highly likely to be the item the user intended to buy.

Original list:"""

CLEANUP_RETRY = RetryConfig(max_retries=2, initial_backoff=0.5, max_backoff=4.0)


class CleanupChange(BaseModel):
    type: Literal["unchanged", "fixed", "standardized", "removed"]
    original: str
    cleaned: str = ""
    reason: Optional[str] = None


class CleanupResult(BaseModel):
    original_text: str
    cleaned_text: str
    used_ai: bool
    changes: List[CleanupChange] = Field(default_factory=list)
    error: Optional[str] = None


def _similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, a.lower(), b.lower()).ratio()


def generate_changes(original: List[str], cleaned: List[str]) -> List[CleanupChange]:
    """Pair each original line with the cleaned line it most likely became."""
    changes: List[CleanupChange] = []
    matched = set()

    for line in original:
        if line in cleaned and cleaned.index(line) not in matched:
            matched.add(cleaned.index(line))
            changes.append(CleanupChange(type="unchanged", original=line, cleaned=line))
            continue

        best_index, best_score = None, 0.0
        for idx, candidate in enumerate(cleaned):
            if idx in matched:
                continue
            score = _similarity(line, candidate)
            if score > best_score:
                best_index, best_score = idx, score

        if best_index is not None and best_score > 0.5:
            matched.add(best_index)
            change_type = "fixed" if best_score > 0.8 else "standardized"
            changes.append(CleanupChange(
                type=change_type,
                original=line,
                cleaned=cleaned[best_index],
                reason="Fixed by AI" if change_type == "fixed" else "Standardized by AI",
            ))
            continue

        # keyword overlap catches "Roma Tomatoes" -> "tomatoes"
        words = [w for w in line.lower().split() if len(w) > 3]
        keyword_index = next(
            (idx for idx, candidate in enumerate(cleaned)
             if idx not in matched and any(w in candidate.lower().split() for w in words)),
            None,
        )
        if keyword_index is not None:
            matched.add(keyword_index)
            changes.append(CleanupChange(
                type="standardized",
                original=line,
                cleaned=cleaned[keyword_index],
                reason="Standardized by AI",
            ))
            continue

        changes.append(CleanupChange(
            type="removed",
            original=line,
            reason="Removed by AI (duplicate or invalid)",
        ))

    return changes


def strip_markdown(text: str) -> str:
    """Drop code fences and leading thinking tags some models add anyway."""
    text = text.strip()
    text = re.sub(r"^<think>[\s\S]*?</think>\s*", "", text)
    fenced = re.search(r"```(?:\w+)?\s*([\s\S]*?)\s*```", text)
    if fenced:
        text = fenced.group(1)
    return text.strip()


def _split_lines(text: str) -> List[str]:
    return [line.strip() for line in re.split(r"\r?\n", text) if line.strip()]


class AICleaner:
    """Rewrites list text with an Ollama model."""

    def __init__(self, model: str = OLLAMA_MODEL, host: str = OLLAMA_HOST, client=None):
        self.model = model
        self.host = host
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = ollama.Client(host=self.host)
        return self._client

    @retry_with_backoff(config=CLEANUP_RETRY)
    def _call_model(self, list_text: str) -> str:
        try:
            response = self.client.chat(
                model=self.model,
                messages=[
                    {"role": "system", "content": CLEANUP_SYSTEM_PROMPT},
                    {"role": "user", "content": f"{CLEANUP_PROMPT}\n\n{list_text}"},
                ],
                stream=False,
                options={"temperature": 0.3},
            )
        except ollama.ResponseError as e:
            if getattr(e, "status_code", None) == 404:
                raise PermanentError(f"Model {self.model} not available: {e.error}", SERVICE)
            raise TransientError(f"Ollama error: {e.error}", SERVICE)
        except (ConnectionError, TimeoutError) as e:
            raise TransientError(f"Ollama unreachable: {e}", SERVICE)

        content = response["message"]["content"] or ""
        content = strip_markdown(content)
        if not content:
            raise PermanentError("No response content from Ollama", SERVICE)
        return content

    def clean(self, list_text: str) -> CleanupResult:
        """
        Clean the list; never raises.

        Returns:
            CleanupResult with used_ai=False and the original text on failure
        """
        logger.info(f"[CLEANER] Cleaning list with {self.model} ({len(list_text)} chars)")
        try:
            cleaned_text = self._call_model(list_text)
        except Exception as e:
            logger.warning(f"[CLEANER] AI cleanup failed, using original list: {e}")
            return CleanupResult(
                original_text=list_text,
                cleaned_text=list_text,
                used_ai=False,
                error=f"AI cleanup failed: {e}",
            )

        changes = generate_changes(_split_lines(list_text), _split_lines(cleaned_text))
        logger.info(
            f"[CLEANER] Cleanup done: "
            f"{sum(1 for c in changes if c.type != 'unchanged')} of {len(changes)} lines changed"
        )
        return CleanupResult(
            original_text=list_text,
            cleaned_text=cleaned_text,
            used_ai=True,
            changes=changes,
        )
