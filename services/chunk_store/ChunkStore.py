"""In-memory chunk store.

Owns the two identity counters of the corpus:

- the global counter, the next ``global_index`` to hand out (process-wide,
  never reused, also the vector id "chunk_<n>"),
- one sequence counter per category, the last sequence used in
  ``local_index = "<categoryOrdinal>.<sequence>"``.

Both only move forward while the process runs. On restart they are rebuilt
from the maxima of the rehydrated records, see load_rehydrated().
"""

from typing import Literal

from shared.exceptions.errors import SyncError, ValidationError, WordLimitExceededError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import ChunkCategory, ChunkRecord, make_local_index, parse_local_index

DEFAULT_WORD_LIMIT = 600

OrderBy = Literal["global_index", "display_order"]


class ChunkStore:
    """Single-writer store of ChunkRecords keyed by local index."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self.word_limit = helper_config.get_int_val("CHUNK_WORD_LIMIT", default=DEFAULT_WORD_LIMIT, minimum=1)

        self._chunks: dict[str, ChunkRecord] = {}
        self._next_global_index = 0
        self._category_sequences: dict[ChunkCategory, int] = {category: 0 for category in ChunkCategory}

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def check_word_limit(self, content: str, confirm_long: bool) -> None:
        """Enforce the word-count policy.

        Exceeding the limit is allowed, but only after the operator confirmed it.

        Raises:
            WordLimitExceededError: If the content is too long and not confirmed.
        """
        word_count = len(content.split())
        if word_count > self.word_limit and not confirm_long:
            raise WordLimitExceededError(word_count=word_count, limit=self.word_limit)
        if word_count > self.word_limit:
            self.logging.warning("Storing confirmed chunk with %d words (limit %d).", word_count, self.word_limit)

    def check_edit(
        self,
        chunk: ChunkRecord,
        new_content: str,
        new_category: ChunkCategory | str | None,
        confirm_long: bool,
    ) -> ChunkCategory:
        """Validate an edit without applying it and return the resolved category.

        Raises:
            ValidationError: Empty content or unknown category.
            WordLimitExceededError: If the new content is too long and not confirmed.
        """
        self._check_content(new_content)
        resolved = chunk.category if new_category is None else self._coerce_category(new_category)
        self.check_word_limit(new_content, confirm_long)
        return resolved

    def _check_content(self, content: str) -> str:
        if content is None or not content.strip():
            raise ValidationError("Chunk content must not be empty.")
        return content

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_chunk(self, local_index: str) -> ChunkRecord:
        """
        Raises:
            ValidationError: If no chunk with this local index exists.
        """
        chunk = self._chunks.get(str(local_index))
        if chunk is None:
            raise ValidationError(f"Chunk '{local_index}' does not exist.")
        return chunk

    def list_chunks(self, order_by: OrderBy = "global_index") -> list[ChunkRecord]:
        """Return all chunks.

        Args:
            order_by: "global_index" for ascending ingestion order,
                "display_order" for most recent first.
        """
        if order_by not in ("global_index", "display_order"):
            raise ValidationError(f"Unsupported order '{order_by}'.")
        return sorted(
            self._chunks.values(),
            key=lambda chunk: chunk.global_index,
            reverse=order_by == "display_order",
        )

    def counters(self) -> dict:
        return {
            "next_global_index": self._next_global_index,
            "category_sequences": {category.value: seq for category, seq in self._category_sequences.items()},
        }

    def __len__(self) -> int:
        return len(self._chunks)

    ##########################################
    ############### MUTATIONS ################
    ##########################################

    def add_chunk(self, content: str, category: ChunkCategory | str, confirm_long: bool = False) -> ChunkRecord:
        """Create a draft chunk and advance both counters.

        Raises:
            ValidationError: On empty content or unknown category.
            WordLimitExceededError: If the chunk is too long and not confirmed.
        """
        content = self._check_content(content)
        category = self._coerce_category(category)
        self.check_word_limit(content, confirm_long)

        sequence = self._category_sequences[category] + 1
        chunk = ChunkRecord(
            content=content,
            category=category,
            local_index=make_local_index(category, sequence),
            global_index=self._next_global_index,
            uploaded_to_pinecone=False,
        )
        self._category_sequences[category] = sequence
        self._next_global_index += 1
        self._chunks[chunk.local_index] = chunk

        self.logging.info("Added chunk %s (global %d, %d words).", chunk.local_index, chunk.global_index, chunk.word_count)
        return chunk

    def edit_chunk(
        self,
        local_index: str,
        new_content: str,
        new_category: ChunkCategory | str | None = None,
        remote_deleted: bool = False,
        confirm_long: bool = False,
    ) -> ChunkRecord:
        """Replace content and category in place, reverting the chunk to a draft.

        The chunk keeps its local and global index. An uploaded chunk can only be
        edited after its remote vector was deleted (``remote_deleted=True``).

        Raises:
            ValidationError: Unknown chunk, empty content or unknown category.
            WordLimitExceededError: If the new content is too long and not confirmed.
            SyncError: If the chunk is uploaded and the remote vector was not deleted.
        """
        chunk = self.get_chunk(local_index)
        new_category = self.check_edit(chunk, new_content, new_category, confirm_long)

        if chunk.uploaded_to_pinecone and not remote_deleted:
            raise SyncError(f"Chunk {local_index} is uploaded; its remote vector must be deleted before editing.")

        chunk.content = new_content
        chunk.category = new_category
        chunk.clear_embedding()

        self.logging.info("Edited chunk %s (global %d), embedding cleared.", chunk.local_index, chunk.global_index)
        return chunk

    def delete_chunk(self, local_index: str) -> ChunkRecord:
        """Remove a chunk locally. Its indices are not handed out again.

        Raises:
            ValidationError: If the chunk does not exist.
        """
        chunk = self.get_chunk(local_index)
        del self._chunks[chunk.local_index]
        self.logging.info("Deleted chunk %s (global %d).", chunk.local_index, chunk.global_index)
        return chunk

    def mark_uploaded(self, chunks: list[ChunkRecord]) -> None:
        """Flag chunks whose current (content, embedding) is now stored remotely."""
        for chunk in chunks:
            if chunk.embedding is None:
                raise SyncError(f"Chunk {chunk.local_index} has no embedding and cannot be marked uploaded.")
            chunk.uploaded_to_pinecone = True
            chunk.remote_id_claimed = True

    def ensure_global_floor(self, floor: int) -> None:
        """Make sure the next global index is at least ``floor``."""
        if floor > self._next_global_index:
            self.logging.info("Advancing global index from %d to %d.", self._next_global_index, floor)
            self._next_global_index = floor

    def reassign_global_index(self, chunk: ChunkRecord) -> int:
        """Move a never-uploaded chunk to the next free global index. The local index is kept.

        Raises:
            SyncError: If a vector was already stored under the chunk's global index.
        """
        if chunk.remote_id_claimed:
            raise SyncError(f"Chunk {chunk.local_index} already owns vector id chunk_{chunk.global_index}.")
        previous = chunk.global_index
        chunk.global_index = self._next_global_index
        self._next_global_index += 1
        self.logging.warning(
            "Chunk %s moved from global %d to %d, the index already holds vectors up to that id.",
            chunk.local_index, previous, chunk.global_index,
        )
        return chunk.global_index

    def load_rehydrated(self, records: list[ChunkRecord]) -> None:
        """Replace the store content with records rebuilt from the vector index.

        Counters are raised to the observed maxima: the global counter to at
        least max(global_index) + 1, each category sequence to at least
        max(sequence). Chunks that existed only locally are dropped; their
        indices are not handed out again by this process.

        Raises:
            ValueError: If a record carries a malformed local index.
        """
        dropped = [chunk.local_index for chunk in self._chunks.values() if not chunk.uploaded_to_pinecone]
        if dropped:
            self.logging.warning("Rehydrate drops %d local-only chunk(s): %s", len(dropped), ", ".join(dropped))

        # counters never move backwards inside one process
        self._chunks = {}

        for record in records:
            if record.local_index in self._chunks:
                self.logging.warning(
                    "Duplicate local index %s in vector index (global %d), keeping the newer one.",
                    record.local_index, record.global_index,
                )
                if self._chunks[record.local_index].global_index > record.global_index:
                    continue
            record.remote_id_claimed = True
            self._chunks[record.local_index] = record
            self._next_global_index = max(self._next_global_index, record.global_index + 1)
            # the prefix, not the current category, owns the sequence: an edit may change the category
            ordinal, sequence = parse_local_index(record.local_index)
            owner = ChunkCategory.from_ordinal(ordinal)
            self._category_sequences[owner] = max(self._category_sequences[owner], sequence)

        self.logging.info(
            "Loaded %d rehydrated chunk(s); next global index %d.", len(self._chunks), self._next_global_index
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def _coerce_category(category: ChunkCategory | str) -> ChunkCategory:
        try:
            return ChunkCategory(category)
        except ValueError:
            raise ValidationError(f"Unknown category '{category}'.")
