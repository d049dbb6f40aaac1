"""Tests for embeddings generation with mocked OpenAI API."""

from unittest.mock import MagicMock, patch

import pytest

from app.core.embeddings import EmbeddingClient, build_document_text, truncate_to_tokens
from app.core.errors import ProviderError
from tests.fakes.fake_db import make_settings


@pytest.fixture
def mock_openai_response():
    """Create a mock OpenAI embeddings response."""

    def _create_response(num_embeddings: int, dimension: int = 1536):
        mock_response = MagicMock()
        mock_response.data = []

        for _ in range(num_embeddings):
            mock_embedding = MagicMock()
            mock_embedding.embedding = [0.1] * dimension
            mock_response.data.append(mock_embedding)

        return mock_response

    return _create_response


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def embedder(mock_client, settings):
    return EmbeddingClient(client=mock_client, settings=settings)


def test_embed_single(embedder, mock_client, mock_openai_response):
    """Test embedding a single text."""
    mock_client.embeddings.create.return_value = mock_openai_response(1)

    embedding = embedder.embed("Hello world")

    assert len(embedding) == 1536
    mock_client.embeddings.create.assert_called_once_with(
        model="text-embedding-3-small", input=["Hello world"]
    )


def test_embed_many(embedder, mock_client, mock_openai_response):
    """Test embedding multiple texts."""
    mock_client.embeddings.create.return_value = mock_openai_response(3)

    embeddings = embedder.embed_many(["Text one", "Text two", "Text three"])

    assert len(embeddings) == 3
    for embedding in embeddings:
        assert len(embedding) == 1536


def test_embed_many_empty(embedder, mock_client):
    """Test embedding empty list."""
    assert embedder.embed_many([]) == []
    mock_client.embeddings.create.assert_not_called()


def test_dimension_validation(embedder, mock_client, mock_openai_response):
    """Test that dimension mismatch raises ProviderError."""
    mock_client.embeddings.create.return_value = mock_openai_response(1, dimension=512)

    with pytest.raises(ProviderError, match="Embedding dimension mismatch"):
        embedder.embed("Test text")


def test_count_mismatch(embedder, mock_client, mock_openai_response):
    mock_client.embeddings.create.return_value = mock_openai_response(1)

    with pytest.raises(ProviderError, match="Embedding count mismatch"):
        embedder.embed_many(["one", "two"])


def test_api_failure(embedder, mock_client):
    """Test handling of API failures."""
    mock_client.embeddings.create.side_effect = Exception("API Error")

    with pytest.raises(ProviderError, match="API Error") as exc_info:
        embedder.embed("Test text")

    assert exc_info.value.provider == "openai"
    assert isinstance(exc_info.value.cause, Exception)


def test_model_from_settings(mock_client):
    embedder = EmbeddingClient(
        client=mock_client, settings=make_settings(EMBEDDING_MODEL="text-embedding-3-large")
    )
    assert embedder.model == "text-embedding-3-large"


def test_build_document_text():
    assert build_document_text("Expense Policy", "Keep receipts.") == "Expense Policy\n\nKeep receipts."
    assert build_document_text("Untitled", None) == "Untitled\n\n"


def test_truncate_short_text_untouched():
    with patch("app.core.embeddings._get_encoder") as mock_encoder:
        assert truncate_to_tokens("short text", 8000) == "short text"
        mock_encoder.assert_not_called()


def test_truncate_disabled():
    assert truncate_to_tokens("x" * 50, 0) == "x" * 50


def test_truncate_long_text():
    encoder = MagicMock()
    encoder.encode.return_value = list(range(20))
    encoder.decode.return_value = "first ten tokens"

    with patch("app.core.embeddings._get_encoder", return_value=encoder):
        result = truncate_to_tokens("word " * 20, 10)

    assert result == "first ten tokens"
    encoder.decode.assert_called_once_with(list(range(10)))


def test_long_text_within_token_cap_untouched():
    encoder = MagicMock()
    encoder.encode.return_value = list(range(5))

    with patch("app.core.embeddings._get_encoder", return_value=encoder):
        assert truncate_to_tokens("word " * 20, 10) == "word " * 20

    encoder.decode.assert_not_called()


def test_embed_sends_truncated_input(mock_client, mock_openai_response):
    embedder = EmbeddingClient(
        client=mock_client, settings=make_settings(EMBEDDING_MAX_INPUT_TOKENS=4)
    )
    mock_client.embeddings.create.return_value = mock_openai_response(1)
    encoder = MagicMock()
    encoder.encode.return_value = [1, 2, 3, 4, 5, 6]
    encoder.decode.return_value = "cut"

    with patch("app.core.embeddings._get_encoder", return_value=encoder):
        embedder.embed("a much longer document body")

    assert mock_client.embeddings.create.call_args.kwargs["input"] == ["cut"]


@pytest.mark.asyncio
async def test_embed_async(embedder, mock_client, mock_openai_response):
    mock_client.embeddings.create.return_value = mock_openai_response(1)

    embedding = await embedder.embed_async("Hello world")

    assert len(embedding) == 1536
