"""
Tests for lexical relevance scoring and rulebook retrieval.
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).resolve().parent.parent))

from rag.chunk_store import Chunk, ChunkStore
from rag.relevance import RelevanceScorer, tokenize
from rag.retriever import RulebookRetriever


def make_chunk(chunk_id, section, text, game_id="catan-base", page=1):
    return Chunk(id=chunk_id, game_id=game_id, page=page, section=section, text=text)


ROAD_CHUNK = make_chunk("road", "Building Roads", "Roads cost one brick and one wood.", page=6)
TRADING_CHUNK = make_chunk("trade", "Trading", "Trade resources with other players during your turn.", page=5)


class TestRelevanceScorer(unittest.TestCase):

    def setUp(self):
        self.scorer = RelevanceScorer()

    def test_tokenize_lowercases_and_splits_on_whitespace(self):
        self.assertEqual(tokenize("How do I  Build\ta Road?"), ["how", "do", "i", "build", "a", "road?"])

    def test_road_question_prefers_building_roads_over_trading(self):
        question = "How do I build a road?"
        road_score = self.scorer.score(question, ROAD_CHUNK)
        trading_score = self.scorer.score(question, TRADING_CHUNK)
        self.assertGreater(road_score, trading_score)

    def test_substring_match_counts_each_chunk_token(self):
        chunk = make_chunk("c", "Misc", "robber robbers moves")
        # "robber" matches "robber" and "robbers"; "moves" is not related
        self.assertEqual(self.scorer.score("robber", chunk), 2)

    def test_short_question_tokens_skip_text_matching(self):
        chunk = make_chunk("c", "Misc", "go to the port")
        self.assertEqual(self.scorer.score("go", chunk), 0)

    def test_section_bonus_applies_to_every_question_token(self):
        chunk = make_chunk("c", "Robber", "nothing relevant here")
        # "ro" is too short for text matching but still earns the section bonus
        self.assertEqual(self.scorer.score("ro", chunk), 2)

    def test_custom_weights(self):
        scorer = RelevanceScorer(min_token_length=1, section_bonus=5)
        chunk = make_chunk("c", "Dice", "roll dice")
        self.assertEqual(scorer.score("dice", chunk), 1 + 5)

    def test_score_batch_keeps_input_order(self):
        scores = self.scorer.score_batch("build road", [TRADING_CHUNK, ROAD_CHUNK])
        self.assertEqual(len(scores), 2)
        self.assertEqual(scores[1], self.scorer.score("build road", ROAD_CHUNK))


class TestRulebookRetriever(unittest.TestCase):

    def setUp(self):
        self.retriever = RulebookRetriever()

    def test_results_sorted_by_descending_score(self):
        chunks = [
            make_chunk("low", "Misc", "one robber"),
            make_chunk("high", "Robber", "the robber steals and the robber blocks"),
            make_chunk("none", "Trading", "exchange cards"),
        ]
        ranked = self.retriever.rank("robber", chunks)
        self.assertEqual([item.chunk.id for item in ranked], ["high", "low"])
        scores = [item.score for item in ranked]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_ties_preserve_input_order(self):
        chunks = [make_chunk(f"c{i}", "Misc", "the robber moves") for i in range(4)]
        result = self.retriever.retrieve("robber", chunks)
        self.assertEqual([chunk.id for chunk in result], ["c0", "c1", "c2", "c3"])

    def test_zero_score_chunks_are_dropped(self):
        self.assertEqual(self.retriever.retrieve("zebra", [ROAD_CHUNK, TRADING_CHUNK]), [])

    def test_top_n_limit(self):
        chunks = [make_chunk(f"c{i}", "Misc", "robber") for i in range(8)]
        self.assertEqual(len(self.retriever.retrieve("robber", chunks)), 5)
        self.assertEqual(len(self.retriever.retrieve("robber", chunks, top_n=2)), 2)

    def test_retrieve_for_game_only_returns_that_game(self):
        store = ChunkStore([
            make_chunk("a1", "Robber", "robber rules", game_id="game-a"),
            make_chunk("b1", "Robber", "robber rules", game_id="game-b"),
            make_chunk("a2", "Misc", "the robber again", game_id="game-a"),
        ])
        result = self.retriever.retrieve_for_game("robber", store, "game-a")
        self.assertEqual([chunk.id for chunk in result], ["a1", "a2"])
        self.assertTrue(all(chunk.game_id == "game-a" for chunk in result))
        self.assertEqual(self.retriever.retrieve_for_game("robber", store, "unknown-game"), [])

    def test_settings_from_config(self):
        config = MagicMock()
        config.get.side_effect = lambda section, key, default=None: {
            'TOP_K': 1, 'MIN_TOKEN_LENGTH': 3, 'SECTION_BONUS': 10,
        }.get(key, default)
        retriever = RulebookRetriever(config_manager=config)
        self.assertEqual(retriever.top_n, 1)
        self.assertEqual(retriever.scorer.section_bonus, 10)


if __name__ == "__main__":
    unittest.main()
