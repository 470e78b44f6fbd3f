"""Embedding client using OpenAI text-embedding-3-small."""

from __future__ import annotations

from openai import OpenAI, OpenAIError

from voxindex.errors import EmbeddingFailure


class OpenAIEmbeddingClient:
    """Turns batches of text into fixed-dimension vectors.

    Args:
        api_key: OpenAI API key. Empty means "read OPENAI_API_KEY from env".
        model: OpenAI embedding model name.
        dimension: Vector dimensionality declared to the vector index.
        client: Optional pre-built OpenAI client (tests pass a mock).
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.dimension = dimension
        self._client = client or OpenAI(api_key=api_key or None)

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in a single request.

        Raises:
            EmbeddingFailure: On API errors, or if the response does not hold
                one vector of the declared dimension per input.
        """
        if not texts:
            return []
        try:
            response = self._client.embeddings.create(
                input=texts, model=self.model, dimensions=self.dimension
            )
        except OpenAIError as exc:
            raise EmbeddingFailure(f"Embedding request failed: {exc}") from exc

        vectors = [item.embedding for item in response.data]
        if len(vectors) != len(texts):
            raise EmbeddingFailure(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        for vector in vectors:
            if len(vector) != self.dimension:
                raise EmbeddingFailure(
                    f"Expected {self.dimension}-dimensional embeddings, got {len(vector)}"
                )
        return vectors
