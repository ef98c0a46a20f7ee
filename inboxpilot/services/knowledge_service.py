from dataclasses import dataclass
from typing import List, Optional

import httpx

from inboxpilot.config import settings
from inboxpilot.logging_config import get_logger
from inboxpilot.services.alert_service import alert_warning

logger = get_logger("knowledge_service")


@dataclass
class KnowledgeChunk:
    content: str
    score: Optional[float] = None
    source: Optional[str] = None


def retrieve_knowledge_chunks(business_id: str, query: str, k: int = 4) -> List[KnowledgeChunk]:
    """Query the tenant's knowledge base. Returns [] when it is not configured or down."""
    if not settings.knowledge_base_url or not query:
        return []

    try:
        with httpx.Client(timeout=settings.knowledge_timeout_seconds) as client:
            response = client.post(
                f"{settings.knowledge_base_url.rstrip('/')}/retrieve",
                json={"business_id": business_id, "query": query, "k": k},
            )
    except httpx.HTTPError as e:
        logger.error(f"Knowledge retrieval failed: {e}")
        alert_warning("Knowledge retrieval failed", {"business_id": business_id, "error": str(e)})
        return []

    if response.status_code != 200:
        logger.error(f"Knowledge retrieval error: {response.status_code} - {response.text[:200]}")
        alert_warning("Knowledge retrieval failed", {"business_id": business_id, "status": response.status_code})
        return []

    try:
        data = response.json()
    except ValueError:
        logger.error("Knowledge retrieval returned invalid JSON")
        return []

    raw_chunks = data.get("chunks") if isinstance(data, dict) else None
    if not isinstance(raw_chunks, list):
        logger.error("Knowledge retrieval returned an unexpected body")
        return []

    chunks = []
    for item in raw_chunks[:k]:
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            continue
        content = item["content"].strip()
        if content:
            chunks.append(KnowledgeChunk(content=content, score=item.get("score"), source=item.get("source")))

    logger.info(f"Knowledge retrieval: {len(chunks)} chunks for business {business_id}")
    return chunks
