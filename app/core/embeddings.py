"""OpenAI embeddings generation with validation."""

import asyncio
from functools import lru_cache

import tiktoken
from openai import OpenAI

from app.core.config import Settings, get_settings
from app.core.errors import ProviderError
from app.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def _get_encoder() -> tiktoken.Encoding:
    # cl100k_base is the tokenizer of the text-embedding-3 family
    return tiktoken.get_encoding("cl100k_base")


def build_document_text(title: str | None, content: str | None) -> str:
    """Text embedded for a document: title, blank line, body."""
    return f"{title or ''}\n\n{content or ''}"


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """
    Cut text to at most max_tokens tokens.

    Args:
        text: Input text
        max_tokens: Token cap (<= 0 disables truncation)

    Returns:
        The text itself when it fits, else its first max_tokens tokens decoded
    """
    if max_tokens <= 0 or not text:
        return text

    # Every token covers at least one UTF-8 byte
    if len(text.encode("utf-8")) <= max_tokens:
        return text

    encoder = _get_encoder()
    tokens = encoder.encode(text, disallowed_special=())
    if len(tokens) <= max_tokens:
        return text

    logger.debug(f"Truncating embedding input from {len(tokens)} to {max_tokens} tokens")
    return encoder.decode(tokens[:max_tokens])


class EmbeddingClient:
    """Maps text to embedding vectors through the OpenAI embeddings API."""

    def __init__(self, client: OpenAI | None = None, settings: Settings | None = None):
        """
        Args:
            client: OpenAI client (built from settings when omitted)
            settings: Settings override (defaults to get_settings())
        """
        self.settings = settings or get_settings()
        self.client = client or OpenAI(api_key=self.settings.OPENAI_API_KEY)

    @property
    def model(self) -> str:
        return self.settings.EMBEDDING_MODEL

    def embed(self, text: str) -> list[float]:
        """
        Generate the embedding of a single text.

        Raises:
            ProviderError: If the API call fails or returns a bad vector
        """
        return self.embed_many([text])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for several texts in one request.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in input order

        Raises:
            ProviderError: If the API call fails or returns a bad vector
        """
        if not texts:
            return []

        inputs = [
            truncate_to_tokens(text, self.settings.EMBEDDING_MAX_INPUT_TOKENS) for text in texts
        ]

        try:
            response = self.client.embeddings.create(model=self.model, input=inputs)
        except Exception as e:
            logger.error(f"Failed to generate embeddings: {e}")
            raise ProviderError(f"Embedding request failed: {e}", cause=e) from e

        data = list(response.data or [])
        if len(data) != len(inputs):
            raise ProviderError(
                f"Embedding count mismatch: expected {len(inputs)}, got {len(data)}"
            )

        embeddings = []
        for i, embedding_obj in enumerate(data):
            embedding = list(embedding_obj.embedding)

            if len(embedding) != self.settings.EMBEDDING_DIM:
                raise ProviderError(
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {self.settings.EMBEDDING_DIM}, got {len(embedding)}"
                )

            embeddings.append(embedding)

        logger.debug(
            f"Generated {len(embeddings)} embeddings using {self.model}",
            extra={"extra_data": {"model": self.model, "count": len(embeddings)}},
        )

        return embeddings

    async def embed_async(self, text: str) -> list[float]:
        """Async wrapper around embed using thread pool."""
        return await asyncio.to_thread(self.embed, text)
