"""Narrative Memory Engine - SQLite-backed host for memory pipelines."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from story_memory.host import LoggingNotifier, Notifier, StoryDocument
from story_memory.llm import OpenAIService, TextService
from story_memory.models import EngineConfig
from story_memory.pipeline import MemoryPipeline
from story_memory.tokens import HeuristicTokenizer, TiktokenTokenizer, Tokenizer


class NarrativeMemoryEngine:
    """Engine storing documents, their narrative state and compiled memory."""

    def __init__(
        self,
        config: EngineConfig,
        service: TextService | None = None,
        tokenizer: Tokenizer | None = None,
        notifier: Notifier | None = None,
    ):
        self.config = config
        self.db = sqlite3.connect(config.db_path)
        self.db.row_factory = sqlite3.Row
        self._init_schema()
        self._service = service
        self._tokenizer = tokenizer if tokenizer is not None else self._init_tokenizer()
        self._notifier = notifier or LoggingNotifier()
        self._pipelines: dict[str, MemoryPipeline] = {}

    def _init_schema(self) -> None:
        """Initialize database schema."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path) as f:
            schema = f.read()
        self.db.executescript(schema)
        self.db.commit()

    def _init_tokenizer(self) -> Tokenizer:
        """Initialize the tokenizer backend."""
        if self.config.tokenizer_backend == "heuristic":
            return HeuristicTokenizer()
        if self.config.tokenizer_backend == "tiktoken":
            return TiktokenTokenizer(model=self.config.model)
        raise ValueError(f"Unknown tokenizer backend: {self.config.tokenizer_backend}")

    @property
    def service(self) -> TextService:
        """The text-understanding service, created on first use."""
        if self._service is None:
            if self.config.service_backend != "openai":
                raise ValueError(f"Unknown service backend: {self.config.service_backend}")
            self._service = OpenAIService(
                base_url=self.config.base_url,
                timeout=self.config.request_timeout,
            )
        return self._service

    def close(self) -> None:
        """Close database connection."""
        self.db.close()

    def __enter__(self) -> NarrativeMemoryEngine:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Section Operations
    # -------------------------------------------------------------------------

    def add_section(self, document_id: str, text: str) -> int:
        """Append a section of story text to a document.

        Args:
            document_id: Which document
            text: The section text

        Returns:
            The new section id (ids increase in document order)
        """
        cursor = self.db.execute(
            "INSERT INTO sections (document_id, text) VALUES (?, ?)",
            (document_id, text),
        )
        self.db.commit()
        return cursor.lastrowid

    def section_ids(self, document_id: str) -> list[int]:
        """Section ids of a document in order."""
        rows = self.db.execute(
            "SELECT id FROM sections WHERE document_id = ? ORDER BY id",
            (document_id,),
        ).fetchall()
        return [row["id"] for row in rows]

    def scan_sections(self, document_id: str) -> list[tuple[int, str]]:
        """(section id, text) pairs of a document in order."""
        rows = self.db.execute(
            "SELECT id, text FROM sections WHERE document_id = ? ORDER BY id",
            (document_id,),
        ).fetchall()
        return [(row["id"], row["text"]) for row in rows]

    def list_documents(self) -> list[str]:
        """Ids of all documents that have content or stored state."""
        rows = self.db.execute(
            """
            SELECT document_id FROM sections
            UNION
            SELECT document_id FROM story_storage
            ORDER BY document_id
            """
        ).fetchall()
        return [row["document_id"] for row in rows]

    # -------------------------------------------------------------------------
    # Storage Operations
    # -------------------------------------------------------------------------

    def storage_get(self, document_id: str, key: str) -> str | None:
        """Get a stored value, or None if the key is unset."""
        row = self.db.execute(
            "SELECT value FROM story_storage WHERE document_id = ? AND key = ?",
            (document_id, key),
        ).fetchone()
        return row["value"] if row is not None else None

    def storage_set(self, document_id: str, key: str, value: str) -> None:
        """Set a stored value, replacing any previous one."""
        self.db.execute(
            """
            INSERT INTO story_storage (document_id, key, value)
            VALUES (?, ?, ?)
            ON CONFLICT (document_id, key) DO UPDATE SET value = excluded.value
            """,
            (document_id, key, value),
        )
        self.db.commit()

    # -------------------------------------------------------------------------
    # Memory Operations
    # -------------------------------------------------------------------------

    def set_memory(self, document_id: str, text: str) -> None:
        """Publish the compiled memory text of a document."""
        self.db.execute(
            """
            INSERT INTO memory (document_id, text, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT (document_id) DO UPDATE
            SET text = excluded.text, updated_at = excluded.updated_at
            """,
            (document_id, text),
        )
        self.db.commit()

    def get_memory(self, document_id: str) -> str:
        """Get the published memory text ('' if none)."""
        row = self.db.execute(
            "SELECT text FROM memory WHERE document_id = ?", (document_id,)
        ).fetchone()
        return row["text"] if row is not None else ""

    # -------------------------------------------------------------------------
    # Pipelines
    # -------------------------------------------------------------------------

    def document(self, document_id: str) -> StoryDocument:
        """View one document through the host protocols."""
        return StoryDocument(self, document_id)

    def pipeline(self, document_id: str) -> MemoryPipeline:
        """Get the memory pipeline of a document.

        One pipeline (and so one lock) exists per document, so documents
        update independently of each other.
        """
        if document_id not in self._pipelines:
            doc = self.document(document_id)
            self._pipelines[document_id] = MemoryPipeline(
                content=doc,
                store=doc,
                sink=doc,
                service=self.service,
                tokenizer=self._tokenizer,
                notifier=self._notifier,
                config=self.config,
            )
        return self._pipelines[document_id]
