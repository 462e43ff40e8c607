"""Tests for the document load pipeline."""
import asyncio

import httpx
import pytest

from docqa.errors import (
    DocumentNotFound,
    ExtractionError,
    ProviderOther,
    ProviderOverloaded,
    ProviderQuotaExceeded,
    RetriesExhausted,
)
from docqa.llm_client import GeminiClient
from docqa.rag.chunker import FixedSizeChunker, HeadingChunker
from docqa.rag.embedder import EmbeddingClient
from docqa.rag.ingest import STATUS_LOADED, STATUS_SKIPPED, IngestPipeline
from docqa.retry import RetryPolicy


@pytest.fixture
def embedder(provider, retry_policy, recording_sleep):
    return EmbeddingClient(provider, retry_policy=retry_policy, sleep=recording_sleep)


@pytest.fixture
def pipeline(store, embedder):
    return IngestPipeline(store, embedder, chunker=HeadingChunker(), single_document=True, concurrency=1)


async def test_load_text_stores_embedded_chunks(pipeline, store, sample_text):
    result = await pipeline.load_text("sample.pdf", sample_text)

    assert result.status == STATUS_LOADED
    assert (result.chunks_created, result.chunks_embedded, result.chunks_failed) == (2, 2, 0)
    headings = [heading for heading, _, _ in store.all_chunks()]
    assert headings == ["Introduction", "Methods"]
    assert store.documents[0].dimension == 3


async def test_failed_chunk_is_skipped(pipeline, store, provider, sample_text):
    provider.embed_errors["Methods\nWe did X."] = [ProviderOther("bad request", 400)]

    result = await pipeline.load_text("sample.pdf", sample_text)

    assert result.chunks_embedded == 1
    assert result.chunks_failed == 1
    assert [text for _, text, _ in store.all_chunks()] == ["Introduction\nHello world."]


async def test_exhausted_chunk_is_skipped(store, provider, recording_sleep, sample_text):
    embedder = EmbeddingClient(
        provider, retry_policy=RetryPolicy(max_attempts=2), sleep=recording_sleep
    )
    pipeline = IngestPipeline(store, embedder, chunker=HeadingChunker(), concurrency=1)
    provider.embed_errors["Introduction\nHello world."] = [ProviderOverloaded("busy")] * 2

    result = await pipeline.load_text("sample.pdf", sample_text)

    assert result.chunks_failed == 1
    assert [heading for heading, _, _ in store.all_chunks()] == ["Methods"]
    assert recording_sleep.delays == [5.0]


async def test_quota_aborts_load(pipeline, store, provider, sample_text):
    provider.embed_errors["Methods\nWe did X."] = [ProviderQuotaExceeded()]

    with pytest.raises(ProviderQuotaExceeded):
        await pipeline.load_text("sample.pdf", sample_text)

    assert store.is_empty


async def test_all_chunks_failing_raises_and_publishes_nothing(pipeline, store, provider, sample_text):
    provider.embed_errors["*"] = [ProviderOther("bad", 400), ProviderOther("bad", 400)]

    with pytest.raises(ProviderOther):
        await pipeline.load_text("sample.pdf", sample_text)

    assert store.is_empty


async def test_reloading_same_document_is_a_no_op(pipeline, provider, sample_text):
    await pipeline.load_text("sample.pdf", sample_text)
    calls = len(provider.embed_calls)

    result = await pipeline.load_text("sample.pdf", sample_text)

    assert result.status == STATUS_SKIPPED
    assert len(provider.embed_calls) == calls


async def test_single_document_mode_skips_other_documents(pipeline, store, sample_text):
    await pipeline.load_text("a.pdf", sample_text)

    result = await pipeline.load_text("b.pdf", sample_text)

    assert result.status == STATUS_SKIPPED
    assert [doc.id for doc in store.documents] == ["a.pdf"]


async def test_multi_document_mode_appends(store, embedder, sample_text):
    pipeline = IngestPipeline(store, embedder, chunker=HeadingChunker(), single_document=False)

    await pipeline.load_text("a.pdf", sample_text)
    await pipeline.load_text("b.pdf", sample_text)
    skipped = await pipeline.load_text("a.pdf", sample_text)

    assert skipped.status == STATUS_SKIPPED
    assert [doc.id for doc in store.documents] == ["a.pdf", "b.pdf"]
    assert len(store.all_chunks()) == 4


async def test_concurrent_embedding_preserves_order(store, embedder):
    pipeline = IngestPipeline(
        store, embedder, chunker=FixedSizeChunker(chunk_size=20, min_length=0), concurrency=3
    )
    text = "".join(f"segment number {i:03d} " for i in range(6))

    result = await pipeline.load_text("long.pdf", text)

    texts = [text for _, text, _ in store.all_chunks()]
    assert result.chunks_embedded == len(texts)
    assert texts == [c.text for c in FixedSizeChunker(chunk_size=20, min_length=0).chunk_text(text)]


async def test_concurrent_quota_stops_queued_chunks(store, provider, retry_policy):
    class YieldingProvider:
        async def embed_text(self, text, model=None):
            await asyncio.sleep(0)
            return await provider.embed_text(text, model=model)

    pipeline = IngestPipeline(
        store,
        EmbeddingClient(YieldingProvider(), retry_policy=retry_policy),
        chunker=FixedSizeChunker(chunk_size=20, min_length=0),
        concurrency=2,
    )
    provider.embed_errors["*"] = [ProviderQuotaExceeded()]

    with pytest.raises(ProviderQuotaExceeded):
        await pipeline.load_text("long.pdf", "x" * 200)

    assert store.is_empty
    assert len(provider.embed_calls) <= 4


async def test_document_invisible_until_published(store, provider, retry_policy, sample_text):
    observed = []

    class ObservingProvider:
        async def embed_text(self, text, model=None):
            observed.append(store.is_empty)
            return await provider.embed_text(text, model=model)

    pipeline = IngestPipeline(store, EmbeddingClient(ObservingProvider(), retry_policy=retry_policy))

    await pipeline.load_text("sample.pdf", sample_text)

    assert observed == [True, True]
    assert not store.is_empty


async def test_empty_text_is_an_extraction_error(pipeline, store):
    with pytest.raises(ExtractionError):
        await pipeline.load_text("blank.pdf", "  \n\n ")

    assert store.is_empty


async def test_load_document_uses_extractor(store, embedder, sample_text, tmp_path):
    seen = []

    def extractor(path):
        seen.append(path)
        return sample_text

    pipeline = IngestPipeline(store, embedder, chunker=HeadingChunker(), extractor=extractor)
    path = tmp_path / "sample.pdf"

    result = await pipeline.load_document(path)

    assert result.status == STATUS_LOADED
    assert result.document_id == str(path)
    assert seen == [path]


async def test_load_document_missing_file(pipeline, tmp_path):
    with pytest.raises(DocumentNotFound):
        await pipeline.load_document(tmp_path / "missing.pdf")


async def test_extraction_failure_keeps_previous_documents(store, embedder, sample_text):
    def broken(path):
        raise ExtractionError("unreadable")

    pipeline = IngestPipeline(store, embedder, chunker=HeadingChunker(), single_document=False)
    await pipeline.load_text("good.pdf", sample_text)
    pipeline.extractor = broken

    with pytest.raises(ExtractionError):
        await pipeline.load_document("bad.pdf")

    assert [doc.id for doc in store.documents] == ["good.pdf"]


def test_retries_exhausted_is_skippable_kind():
    assert RetriesExhausted("embed", 5).kind == "overloaded"


async def test_malformed_provider_body_skips_only_that_chunk(store, retry_policy):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 1:
            return httpx.Response(200, text="<html>proxy page</html>")
        return httpx.Response(200, json={"embedding": {"values": [0.5, 0.5]}})

    client = GeminiClient(
        api_key="k",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )
    pipeline = IngestPipeline(
        store,
        EmbeddingClient(client, retry_policy=retry_policy),
        chunker=FixedSizeChunker(chunk_size=20, min_length=0),
        concurrency=1,
    )

    result = await pipeline.load_text("d.pdf", "y" * 60)

    assert result.status == STATUS_LOADED
    assert (result.chunks_embedded, result.chunks_failed) == (2, 1)
    assert len(store.all_chunks()) == 2


async def test_dimension_change_between_documents_is_rejected(store, embedder, provider, sample_text):
    pipeline = IngestPipeline(store, embedder, chunker=HeadingChunker(), single_document=False)
    await pipeline.load_text("a.pdf", sample_text)
    provider.default_vector = [1.0, 0.0]

    with pytest.raises(ProviderOther, match="dimension mismatch"):
        await pipeline.load_text("b.pdf", "Other document body.")

    assert [doc.id for doc in store.documents] == ["a.pdf"]
