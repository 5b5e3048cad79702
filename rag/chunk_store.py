"""
Rulebook chunk storage for the RAG pipeline.

Holds the ordered rulebook excerpts loaded once at startup, partitioned by
game identifier. The store is read-only after construction, so concurrent
retrieval calls can share it without locking.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class ChunkStoreError(Exception):
    """Exception raised when a rulebook chunk source cannot be loaded."""
    pass


@dataclass(frozen=True)
class Chunk:
    """A single rulebook excerpt tagged with page and section metadata."""
    id: str
    game_id: str
    page: int
    section: str
    text: str

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Chunk":
        """
        Build a chunk from a source record.

        Accepts both the camelCase ``gameId`` key used by the chunk files and
        the snake_case ``game_id`` key.

        Raises:
            ChunkStoreError: If the record is missing fields or holds invalid values
        """
        if not isinstance(record, dict):
            raise ChunkStoreError(f"Chunk record must be an object, got {type(record).__name__}")

        game_id = record.get('gameId', record.get('game_id'))
        missing = [
            name for name, value in (
                ('id', record.get('id')),
                ('gameId', game_id),
                ('page', record.get('page')),
                ('section', record.get('section')),
                ('text', record.get('text')),
            )
            if value is None
        ]
        if missing:
            raise ChunkStoreError(f"Chunk record {record.get('id')!r} is missing: {', '.join(missing)}")

        page = record['page']
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ChunkStoreError(f"Chunk {record['id']!r} has invalid page {page!r}")
        if not isinstance(record['section'], str):
            raise ChunkStoreError(f"Chunk {record['id']!r} has a non-string section")
        if not isinstance(record['text'], str) or not record['text'].strip():
            raise ChunkStoreError(f"Chunk {record['id']!r} has empty text")

        return cls(
            id=str(record['id']),
            game_id=str(game_id),
            page=page,
            section=record['section'],
            text=record['text'],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'gameId': self.game_id,
            'page': self.page,
            'section': self.section,
            'text': self.text,
        }


class ChunkStore:
    """
    Ordered collection of rulebook chunks partitioned by game identifier.

    Chunks keep their source order inside each partition; retrieval relies on
    that order to break score ties.
    """

    def __init__(self, chunks: Iterable[Chunk] = ()):
        partitions: Dict[str, List[Chunk]] = {}
        by_id: Dict[str, Chunk] = {}
        for chunk in chunks:
            partitions.setdefault(chunk.game_id, []).append(chunk)
            by_id[chunk.id] = chunk

        self._partitions: Dict[str, Tuple[Chunk, ...]] = {
            game_id: tuple(items) for game_id, items in partitions.items()
        }
        self._by_id = by_id
        logger.debug(f"Chunk store holds {len(by_id)} chunks across {len(self._partitions)} games")

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "ChunkStore":
        """Build a store from raw ``{id, gameId, page, section, text}`` records."""
        return cls(Chunk.from_dict(record) for record in records)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ChunkStore":
        """
        Load a store from a JSON file holding an array of chunk records.

        Args:
            path: Path to the chunk source file

        Returns:
            The loaded store

        Raises:
            ChunkStoreError: If the file cannot be read or holds malformed records
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                records = json.load(f)
        except OSError as e:
            raise ChunkStoreError(f"Could not read rulebook chunks from {path}: {e}") from e
        except ValueError as e:
            raise ChunkStoreError(f"Rulebook chunk file {path} is not valid JSON: {e}") from e

        if not isinstance(records, list):
            raise ChunkStoreError(f"Rulebook chunk file {path} must contain a JSON array")

        store = cls.from_records(records)
        logger.info(f"Loaded {len(store)} rulebook chunks from {path}")
        return store

    def get_partition(self, game_id: Optional[str]) -> Tuple[Chunk, ...]:
        """Return the chunks for a game in source order, or an empty tuple if unknown."""
        if not game_id:
            return ()
        return self._partitions.get(game_id, ())

    def get_chunk(self, chunk_id: str) -> Optional[Chunk]:
        return self._by_id.get(chunk_id)

    def game_ids(self) -> List[str]:
        return list(self._partitions)

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._partitions

    def __len__(self) -> int:
        return len(self._by_id)
