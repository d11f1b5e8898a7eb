"""Response Normalizer: post-processes raw provider output.

  - Maps a rich provider's URL-retrieval metadata onto ``UrlRetrieval``
    records with a small status vocabulary, dropping duplicates
  - Recovers the suggestion list from model text that may wrap its JSON in a
    fenced code block
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from app.gateway.types import UrlRetrieval, UrlRetrievalStatus

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 4

# ```json\n{...}\n```  (language tag optional)
_FENCE_PATTERN = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)

_RETRIEVAL_STATUS_MAP: dict[str, UrlRetrievalStatus] = {
    "URL_RETRIEVAL_STATUS_SUCCESS": UrlRetrievalStatus.SUCCESS,
    "URL_RETRIEVAL_STATUS_ERROR": UrlRetrievalStatus.FAILURE,
    "URL_RETRIEVAL_STATUS_PAYWALL": UrlRetrievalStatus.FAILURE,
    "URL_RETRIEVAL_STATUS_UNSAFE": UrlRetrievalStatus.FAILURE,
}


def strip_code_fence(text: str) -> str:
    """Return the body of a fenced code block, or the trimmed text if unfenced."""
    stripped = text.strip()
    match = _FENCE_PATTERN.match(stripped)
    if match and match.group(2):
        return match.group(2).strip()
    return stripped


def parse_suggestions(raw_text: str) -> list[str]:
    """Extract up to four suggestion strings from model output.

    Never raises: unparseable text, a missing ``suggestions`` key or a
    non-list value all yield an empty list.
    """
    if not raw_text:
        return []
    try:
        parsed = json.loads(strip_code_fence(raw_text))
    except ValueError:
        logger.warning("Failed to parse suggestions JSON")
        return []

    if not isinstance(parsed, dict):
        return []
    suggestions = parsed.get("suggestions")
    if not isinstance(suggestions, list):
        return []
    return [s for s in suggestions if isinstance(s, str)][:MAX_SUGGESTIONS]


def normalize_url_retrievals(metadata: list[dict[str, Any]] | None) -> list[UrlRetrieval]:
    """Convert ``urlMetadata`` entries into deduplicated ``UrlRetrieval`` records."""
    if not metadata:
        return []
    seen: set[str] = set()
    result: list[UrlRetrieval] = []
    for entry in metadata:
        if not isinstance(entry, dict):
            continue
        url = _clean_url(entry.get("retrievedUrl") or entry.get("retrieved_url") or "")
        if not url or url in seen:
            continue
        seen.add(url)
        raw_status = entry.get("urlRetrievalStatus") or entry.get("url_retrieval_status") or ""
        status = _RETRIEVAL_STATUS_MAP.get(str(raw_status), UrlRetrievalStatus.OTHER)
        result.append(UrlRetrieval(url=url, status=status))
    return result


def _clean_url(url: str) -> str:
    return str(url).strip().rstrip(".,;:!?)")
