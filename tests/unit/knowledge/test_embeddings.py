"""Unit tests for the Embedder."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from schemarag.knowledge.embeddings import Embedder, EmbeddingError


def _item(index, vector):
    return SimpleNamespace(index=index, embedding=vector)


@pytest.fixture
def client():
    client = MagicMock()
    client.embeddings.create = AsyncMock()
    return client


class TestEmbed:
    async def test_vectors_returned_in_input_order(self, client):
        client.embeddings.create.return_value = SimpleNamespace(
            data=[_item(1, [0.0, 1.0]), _item(0, [1.0, 0.0])]
        )
        embedder = Embedder(client=client, model="text-embedding-3-small")

        vectors = await embedder.embed(["users.id", "users.email"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small", input=["users.id", "users.email"]
        )

    async def test_empty_input_skips_call(self, client):
        embedder = Embedder(client=client)

        assert await embedder.embed([]) == []
        client.embeddings.create.assert_not_awaited()

    async def test_short_response_raises(self, client):
        client.embeddings.create.return_value = SimpleNamespace(data=[_item(0, [1.0])])
        embedder = Embedder(client=client)

        with pytest.raises(EmbeddingError, match="1 vectors for 2 inputs"):
            await embedder.embed(["a", "b"])

    async def test_api_error_wrapped(self, client):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        client.embeddings.create.side_effect = openai.APIConnectionError(request=request)
        embedder = Embedder(client=client)

        with pytest.raises(EmbeddingError, match="Embedding request failed"):
            await embedder.embed(["a"])

    async def test_embed_query(self, client):
        client.embeddings.create.return_value = SimpleNamespace(data=[_item(0, [0.5, 0.5])])
        embedder = Embedder(client=client)

        assert await embedder.embed_query("who are the users") == [0.5, 0.5]
