"""
Embedding client.

Thin async wrapper over the OpenAI embeddings endpoint. The same model is
used for indexed schema documents and for questions so their vectors are
comparable.
"""

import logging

import openai
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when the embedding model call fails."""

    pass


class Embedder:
    """
    Batch embedding client.

    Usage:
        embedder = Embedder(api_key="sk-...")
        vectors = await embedder.embed(["Table: users ...", "Table: orders ..."])
        query_vector = await embedder.embed_query("who are the users")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        timeout: int = 30,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=float(timeout))
        logger.info(f"Embedder initialized with model: {model}", extra={"model": model})

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Embed a batch of texts with one API call.

        Returns:
            One vector per input text, in input order

        Raises:
            EmbeddingError: On API failure or a short response
        """
        if not texts:
            return []

        try:
            response = await self.client.embeddings.create(model=self.model, input=texts)
        except openai.APIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise EmbeddingError(
                f"Embedding response returned {len(data)} vectors for {len(texts)} inputs"
            )

        logger.debug(
            f"Embedded {len(texts)} texts ({len(data[0].embedding)} dimensions)",
            extra={"model": self.model, "count": len(texts)},
        )
        return [item.embedding for item in data]

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single question."""
        vectors = await self.embed([text])
        return vectors[0]
