"""Tests for PgNoteStore SQL generation and row mapping (mocked DB)."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notecontext.config import NoteContextConfig
from notecontext.db.note_store import PgNoteStore, lexical_score_from_rank
from notecontext.db.row_mapper import row_to_note
from notecontext.models import EMBEDDING_DIM
from notecontext.retriever import CandidateRetriever

USER_A = "user-a"
EMBEDDING = [0.1] * EMBEDDING_DIM


def _flat(sql: str) -> str:
    return " ".join(sql.split())


def _row(note_id: str = "n1", **extra) -> dict:
    row = {
        "id": note_id,
        "user_id": USER_A,
        "title": "Q3 Project Roadmap",
        "processed_content": "Beta in July.",
        "summary": None,
        "tags": ["work", "planning"],
        "created_at": datetime(2026, 10, 1, tzinfo=UTC),
        "updated_at": datetime(2026, 10, 17, tzinfo=UTC),
        "deleted_at": None,
    }
    row.update(extra)
    return row


class _FakeAcquire:
    """Async context manager that returns a mock connection."""

    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, *args):
        pass


@pytest.fixture
def note_store():
    """Create a PgNoteStore with mocked pool."""
    store = PgNoteStore("postgresql://test/test")
    mock_conn = AsyncMock()
    mock_conn.fetch = AsyncMock(return_value=[])

    # Create mock pool with proper async context manager for acquire()
    mock_pool = MagicMock()
    mock_pool.acquire.return_value = _FakeAcquire(mock_conn)

    store._pool = mock_pool
    return store, mock_conn


class TestConstruction:
    def test_requires_database_url(self):
        with pytest.raises(ValueError, match="Database URL required"):
            PgNoteStore()

    def test_database_url_from_env(self, monkeypatch):
        monkeypatch.setenv("NOTECONTEXT_DATABASE_URL", "postgresql://env/notes")

        assert PgNoteStore().database_url == "postgresql://env/notes"

    def test_from_config(self):
        config = NoteContextConfig(database_url="postgresql://cfg/notes", pool_size=3)

        store = PgNoteStore.from_config(config)

        assert store.database_url == "postgresql://cfg/notes"
        assert store.pool_size == 3
        assert store.ranked_lexical is True

    @pytest.mark.asyncio
    async def test_connect_registers_pgvector_and_close(self):
        store = PgNoteStore("postgresql://test/test", pool_size=4)
        pool = MagicMock()
        pool.close = AsyncMock()

        with patch(
            "notecontext.db.note_store.asyncpg.create_pool",
            AsyncMock(return_value=pool),
        ) as create_pool:
            await store.connect()
            await store.connect()

        create_pool.assert_awaited_once()
        kwargs = create_pool.call_args.kwargs
        assert kwargs["max_size"] == 4
        assert kwargs["setup"] == store._setup_connection

        conn = MagicMock()
        with patch("notecontext.db.note_store.register_vector", AsyncMock()) as register:
            await store._setup_connection(conn)
        register.assert_awaited_once_with(conn)

        await store.close()
        pool.close.assert_awaited_once()
        assert store._pool is None

    @pytest.mark.asyncio
    async def test_concurrent_retrieve_on_cold_store_creates_one_pool(self):
        store = PgNoteStore("postgresql://test/test")
        mock_conn = AsyncMock()
        mock_conn.fetch = AsyncMock(return_value=[])
        pools = []

        async def _slow_create_pool(*args, **kwargs):
            await asyncio.sleep(0.01)
            pool = MagicMock()
            pool.acquire.return_value = _FakeAcquire(mock_conn)
            pool.close = AsyncMock()
            pools.append(pool)
            return pool

        with patch("notecontext.db.note_store.asyncpg.create_pool", _slow_create_pool):
            await CandidateRetriever(store).retrieve(USER_A, "roadmap", EMBEDDING)
        await store.close()

        assert len(pools) == 1
        pools[0].close.assert_awaited_once()
        assert mock_conn.fetch.await_count == 2


class TestVectorSearch:
    """Verify the vector query carries the ownership filter and threshold."""

    @pytest.mark.asyncio
    async def test_sql_and_params(self, note_store):
        store, mock_conn = note_store

        await store.vector_search(USER_A, EMBEDDING, 0.3, 20)

        sql = _flat(mock_conn.fetch.call_args[0][0])
        args = mock_conn.fetch.call_args[0][1:]

        assert "1 - (embedding <=> $1) > $2" in sql
        assert "user_id = $4" in sql
        assert "deleted_at IS NULL" in sql
        assert "embedding IS NOT NULL" in sql
        assert "ORDER BY embedding <=> $1" in sql
        assert "LIMIT $3" in sql
        assert args == (EMBEDDING, 0.3, 20, USER_A)

    @pytest.mark.asyncio
    async def test_maps_rows(self, note_store):
        store, mock_conn = note_store
        mock_conn.fetch.return_value = [_row("n1", similarity=0.82)]

        hits = await store.vector_search(USER_A, EMBEDDING, 0.3, 20)

        assert len(hits) == 1
        assert hits[0].score == pytest.approx(0.82)
        assert hits[0].note.id == "n1"
        assert hits[0].note.body == "Beta in July."
        assert hits[0].note.tags == ("planning", "work")

    @pytest.mark.asyncio
    async def test_rejects_wrong_dimension(self, note_store):
        store, mock_conn = note_store

        with pytest.raises(ValueError, match="1536"):
            await store.vector_search(USER_A, [0.1] * 768, 0.3, 20)

        mock_conn.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_user(self, note_store):
        store, _ = note_store

        with pytest.raises(ValueError):
            await store.vector_search("", EMBEDDING, 0.3, 20)


class TestLexicalSearch:
    """Verify the lexical query: phrase ILIKE, tag match, FTS rank."""

    @pytest.mark.asyncio
    async def test_sql_and_params(self, note_store):
        store, mock_conn = note_store

        await store.lexical_search(USER_A, "  Project Roadmap ", 20)

        sql = _flat(mock_conn.fetch.call_args[0][0])
        args = mock_conn.fetch.call_args[0][1:]

        assert "title ILIKE $2" in sql
        assert "processed_content ILIKE $2" in sql
        assert "lower(tag) = ANY($3::text[])" in sql
        assert "plainto_tsquery('english', $1)" in sql
        assert "ts_rank_cd(" in sql
        assert "user_id = $5" in sql
        assert "deleted_at IS NULL" in sql
        assert "ORDER BY rank DESC, updated_at DESC, id" in sql
        assert args == (
            "Project Roadmap",
            "%Project Roadmap%",
            ["project", "roadmap"],
            20,
            USER_A,
        )

    @pytest.mark.asyncio
    async def test_escapes_wildcards(self, note_store):
        store, mock_conn = note_store

        await store.lexical_search(USER_A, "50% off_sale", 5)

        assert mock_conn.fetch.call_args[0][2] == "%50\\% off\\_sale%"

    @pytest.mark.asyncio
    async def test_blank_text_skips_query(self, note_store):
        store, mock_conn = note_store

        assert await store.lexical_search(USER_A, "   ", 5) == []
        mock_conn.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_scores_from_rank(self, note_store):
        store, mock_conn = note_store
        mock_conn.fetch.return_value = [_row("n1", rank=1.0), _row("n2", rank=0.0)]

        hits = await store.lexical_search(USER_A, "roadmap", 5)

        assert [h.score for h in hits] == [pytest.approx(0.75), pytest.approx(0.5)]


class TestLexicalScore:
    def test_tag_only_match_gets_half(self):
        assert lexical_score_from_rank(0.0) == 0.5
        assert lexical_score_from_rank(None) == 0.5

    def test_bounded_below_one(self):
        assert 0.5 < lexical_score_from_rank(0.1) < lexical_score_from_rank(3.0) < 1.0


class TestRowMapper:
    def test_null_fields(self):
        note = row_to_note(_row(title=None, processed_content=None, tags=None))

        assert note.title == ""
        assert note.body == ""
        assert note.tags == ()
        assert note.embedding is None

    def test_embedding_from_array(self):
        class _Array(list):
            def tolist(self):
                return list(self)

        note = row_to_note(_row(embedding=_Array([0.0] * EMBEDDING_DIM)))

        assert note.embedding == [0.0] * EMBEDDING_DIM
