"""
Hobby embeddings for semantic matching.

The user's hobby names are joined into one string, embedded, and stored as
JSON text in ``profiles.hobby_embedding`` where the recommendation
procedure reads it.
"""
import json
import logging
from typing import Awaitable, Callable

from openai import AsyncOpenAI, OpenAIError

from app.config import settings
from app.errors import RemoteError
from app.gateway.base import Gateway
from app.gateway.filters import eq
from app.services.profile_service import hobby_names

logger = logging.getLogger(__name__)

Embedder = Callable[[str], Awaitable[list[float]]]


class OpenAIEmbedder:
    def __init__(self, api_key: str | None = None, model: str | None = None, dimensions: int | None = None):
        key = api_key or settings.OPENAI_API_KEY
        if not key:
            raise RemoteError("OPENAI_API_KEY is not configured", code="embedding_unavailable")

        self.client = AsyncOpenAI(api_key=key, timeout=30.0)
        self.model = model or settings.EMBEDDING_MODEL
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSIONS

    async def __call__(self, text: str) -> list[float]:
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimensions,
            )
        except OpenAIError as exc:
            logger.error("Embedding request failed: %s", exc)
            raise RemoteError("Failed to generate embedding", code="embedding_failed") from exc
        return list(response.data[0].embedding)


_embedder: Embedder | None = None


def get_embedder() -> Embedder:
    global _embedder
    if _embedder is None:
        _embedder = OpenAIEmbedder()
    return _embedder


def set_embedder(embedder: Embedder | None) -> None:
    global _embedder
    _embedder = embedder


async def update_profile_embedding(
    gateway: Gateway, user_id: str, embedder: Embedder | None = None
) -> dict:
    names = await hobby_names(gateway, user_id)
    hobby_string = ", ".join(names)
    if not hobby_string:
        return {"success": False, "message": "No hobbies found to embed"}

    vector = await (embedder or get_embedder())(hobby_string)
    await gateway.update(
        "profiles",
        {"hobby_embedding": json.dumps(vector)},
        where=[eq("id", user_id)],
    )
    logger.info("Stored %d-dim hobby embedding for %s", len(vector), user_id)
    return {"success": True, "dimensions": len(vector)}
