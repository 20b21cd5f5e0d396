"""Tests for embedding service."""

import hashlib
import math
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from scripture_search.config import EmbeddingProvider, EmbeddingSettings
from scripture_search.embeddings.models import EmbeddingVector
from scripture_search.embeddings.service import (
    HTTPEmbeddingService,
    MockEmbeddingService,
    create_embedding_service,
    mock_embedding,
    prepare_texts,
)
from scripture_search.exceptions import EmbeddingError, ErrorCode, ValidationError


def _response(rows: list[dict]) -> MagicMock:
    response = MagicMock()
    response.json.return_value = {"data": rows}
    response.raise_for_status = MagicMock()
    return response


class TestEmbeddingVector:
    """Tests for EmbeddingVector model."""

    def test_valid_vector(self) -> None:
        """Valid embedding vector is created."""
        result = EmbeddingVector(
            text="test",
            embedding=[0.1, 0.2, 0.3],
            model="test-model",
            dimensions=3,
        )
        assert result.dimensions == 3

    def test_dimensions_mismatch(self) -> None:
        """Mismatched dimensions raise error."""
        with pytest.raises(ValueError, match="dimensions"):
            EmbeddingVector(
                text="test",
                embedding=[0.1, 0.2, 0.3],
                model="test-model",
                dimensions=5,
            )


class TestMockEmbedding:
    """Tests for the deterministic mock embedding."""

    def test_default_dimensions(self) -> None:
        """Default vector length is 1536."""
        assert len(mock_embedding("comfort")) == 1536

    def test_deterministic(self) -> None:
        """Same text gives the same vector."""
        assert mock_embedding("The LORD is my shepherd") == mock_embedding(
            "The LORD is my shepherd"
        )

    def test_different_texts_differ(self) -> None:
        """Different texts give different vectors."""
        assert mock_embedding("peace") != mock_embedding("Peace")

    def test_unit_norm(self) -> None:
        """Vectors are L2-normalized."""
        vector = mock_embedding("strength in weakness", 100)
        assert math.isclose(math.sqrt(sum(v * v for v in vector)), 1.0, rel_tol=1e-9)

    def test_digest_chain(self) -> None:
        """Slots follow chained SHA-256 digests scaled to [-1, 1]."""
        first = hashlib.sha256(b"hope").digest()
        second = hashlib.sha256(first.hex().encode("ascii")).digest()
        raw = [b / 127.5 - 1 for b in first + second[:8]]
        norm = math.sqrt(sum(v * v for v in raw))

        vector = mock_embedding("hope", 40)

        assert len(vector) == 40
        for got, expected in zip(vector, raw, strict=True):
            assert math.isclose(got, expected / norm, rel_tol=1e-12, abs_tol=1e-15)


class TestPrepareTexts:
    """Tests for the input policy."""

    def test_blank_rejected(self) -> None:
        """Blank text raises ValidationError."""
        with pytest.raises(ValidationError):
            prepare_texts(["ok", "   "], max_chars=10)

    def test_long_text_truncated(self) -> None:
        """Text longer than the limit is truncated."""
        assert prepare_texts(["abcdefgh"], max_chars=3) == ["abc"]


class TestMockEmbeddingService:
    """Tests for MockEmbeddingService."""

    async def test_embed_batch(self) -> None:
        """Batch returns one vector per input in order."""
        service = MockEmbeddingService(EmbeddingSettings(dimensions=16))
        results = await service.embed_batch(["one", "two"])

        assert [r.text for r in results] == ["one", "two"]
        assert results[0].embedding == mock_embedding("one", 16)
        assert results[0].dimensions == 16

    async def test_model_override(self) -> None:
        """Explicit model name is recorded on results."""
        service = MockEmbeddingService(EmbeddingSettings(dimensions=8))
        result = await service.embed("grace", model="custom-model")
        assert result.model == "custom-model"

    async def test_truncation_is_content_addressed(self) -> None:
        """Truncated inputs embed the truncated text."""
        service = MockEmbeddingService(EmbeddingSettings(dimensions=8, max_input_chars=4))
        result = await service.embed("mercy and truth")
        assert result.embedding == mock_embedding("merc", 8)


class TestHTTPEmbeddingService:
    """Tests for HTTPEmbeddingService."""

    def test_known_model_dimensions(self) -> None:
        """Known models return correct dimensions."""
        service = HTTPEmbeddingService(settings=EmbeddingSettings(model="text-embedding-3-large"))
        assert service.dimensions == 3072

    def test_unknown_model_dimensions(self) -> None:
        """Unknown models fall back to configured dimensions."""
        settings = EmbeddingSettings(model="unknown-model", dimensions=256)
        service = HTTPEmbeddingService(settings=settings)
        assert service.dimensions == 256

    @pytest.mark.asyncio
    async def test_embed_sends_openai_payload(self) -> None:
        """Request uses the OpenAI embeddings shape and bearer auth."""
        settings = EmbeddingSettings(
            provider=EmbeddingProvider.HTTP,
            base_url="http://test:8080/v1/",
            model="test-model",
            api_key="secret",
        )
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response([{"index": 0, "embedding": [0.1, 0.2]}])

        service = HTTPEmbeddingService(settings=settings, client=mock_client)
        result = await service.embed("test text")

        assert result.embedding == [0.1, 0.2]
        args, kwargs = mock_client.post.call_args
        assert args[0] == "http://test:8080/v1/embeddings"
        assert kwargs["json"] == {"input": ["test text"], "model": "test-model"}
        assert kwargs["headers"] == {"Authorization": "Bearer secret"}

    @pytest.mark.asyncio
    async def test_rows_reordered_by_index(self) -> None:
        """Rows are matched to inputs by their index field."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response(
            [
                {"index": 1, "embedding": [0.0, 1.0]},
                {"index": 0, "embedding": [1.0, 0.0]},
            ]
        )
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        results = await service.embed_batch(["first", "second"])

        assert results[0].text == "first"
        assert results[0].embedding == [1.0, 0.0]
        assert results[1].embedding == [0.0, 1.0]

    @pytest.mark.asyncio
    async def test_row_count_mismatch(self) -> None:
        """Fewer rows than inputs raises EmbeddingError."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response([{"index": 0, "embedding": [0.1]}])
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError):
            await service.embed_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_dimension_change_rejected(self) -> None:
        """A model returning a different length than before is an error."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = [
            _response([{"index": 0, "embedding": [0.1, 0.2]}]),
            _response([{"index": 0, "embedding": [0.1, 0.2, 0.3]}]),
        ]
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        await service.embed("first")
        with pytest.raises(EmbeddingError) as exc_info:
            await service.embed("second")

        assert exc_info.value.code == ErrorCode.EMBEDDING_DIMENSION_MISMATCH

    @pytest.mark.asyncio
    async def test_embed_http_error(self) -> None:
        """HTTP error raises EmbeddingError."""
        mock_response = MagicMock()
        mock_response.status_code = 500
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error",
            request=MagicMock(),
            response=mock_response,
        )
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = mock_response

        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError) as exc_info:
            await service.embed("test")
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_embed_connection_error(self) -> None:
        """Connection error raises EmbeddingError."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.RequestError("Connection failed")

        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError):
            await service.embed("test")

    @pytest.mark.asyncio
    async def test_batch_chunking(self) -> None:
        """Large batches are chunked correctly."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = lambda *_a, **_k: _response(
            [{"index": 0, "embedding": [0.1]}, {"index": 1, "embedding": [0.2]}]
        )
        service = HTTPEmbeddingService(
            settings=EmbeddingSettings(batch_size=2),
            client=mock_client,
        )

        results = await service.embed_batch(["t1", "t2", "t3", "t4"])

        assert len(results) == 4
        assert mock_client.post.call_count == 2

    async def test_close_owned_client(self) -> None:
        """Service closes a client it created."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)
        service._owns_client = True

        await service.close()

        mock_client.aclose.assert_awaited_once()


class TestCreateEmbeddingService:
    """Tests for provider selection."""

    def test_mock_by_default(self) -> None:
        """Default provider is the mock."""
        assert isinstance(create_embedding_service(EmbeddingSettings()), MockEmbeddingService)

    def test_http_provider(self) -> None:
        """HTTP provider builds the HTTP service."""
        settings = EmbeddingSettings(provider=EmbeddingProvider.HTTP)
        assert isinstance(create_embedding_service(settings), HTTPEmbeddingService)
