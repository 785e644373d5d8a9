"""
Testing the score ledger
- Identity required, dedup by round id (and the old fallback heuristic)
- Per-level ranking and truncation, player statistics
"""

from bullscows.ledger import ScoreDraft, ScoreLedger, date_label
from bullscows.persistence import SCORE_TABLE_KEY
from bullscows.schemas import ScoreRecord

BASE_TS = 1_718_000_000_000


def draft(round_id, attempts=5, level=4, timestamp=BASE_TS, elapsed="1m 2s"):
    return ScoreDraft(
        level=level,
        attempts=attempts,
        elapsed_display=elapsed,
        timestamp=timestamp,
        round_id=round_id,
    )


def test_commit_without_identity_is_blocked(ledger, documents):
    result = ledger.commit(draft("game_1"))

    assert result.ok is False
    assert result.error == "NoIdentity"
    assert ledger.query() == []
    assert documents.load(SCORE_TABLE_KEY) is None

def test_commit_without_identity_leaves_table_unchanged(ledger, identities, documents):
    identities.set_display_name("Ana")
    ledger.commit(draft("game_1"))
    documents.discard("identity")

    result = ledger.commit(draft("game_2"))

    assert result.error == "NoIdentity"
    assert len(ledger.query()) == 1

def test_commit_builds_full_record(ledger, identities):
    identity = identities.set_display_name("Ana")

    result = ledger.commit(draft("game_1", attempts=7, elapsed="42s"))

    assert result.ok is True
    record = result.record
    assert record.player_id == identity.player_id
    assert record.player_display_name == "Ana"
    assert record.round_id == "game_1"
    assert record.attempts == 7
    assert record.elapsed_display == "42s"
    assert record.date_label == date_label(BASE_TS)
    assert ledger.query() == [record]

def test_same_round_id_overwrites(ledger, identities):
    identities.set_display_name("Ana")

    ledger.commit(draft("game_1", attempts=9))
    result = ledger.commit(draft("game_1", attempts=6, timestamp=BASE_TS + 60_000))

    assert result.replaced is True
    scores = ledger.query()
    assert len(scores) == 1
    assert scores[0].attempts == 6

def test_legacy_record_without_round_id_is_deduplicated(ledger, identities, documents):
    identity = identities.set_display_name("Ana")
    legacy = ScoreRecord(
        level=4,
        attempts=5,
        elapsed_display="30s",
        date_label="10/06/2024",
        timestamp=BASE_TS,
        player_display_name="Ana",
        player_id=identity.player_id,
    )
    documents.save(SCORE_TABLE_KEY, [legacy.model_dump(mode="json")])

    # same player, level and attempts, 3 seconds later: a double submit
    ledger.commit(draft("game_1", attempts=5, timestamp=BASE_TS + 3_000))
    assert len(ledger.query()) == 1

    # 10 seconds later it is a different game
    ledger.commit(draft("game_2", attempts=5, timestamp=BASE_TS + 10_000))
    assert len(ledger.query()) == 2

def test_different_round_ids_are_kept(ledger, identities):
    identities.set_display_name("Ana")

    ledger.commit(draft("game_1", attempts=5))
    ledger.commit(draft("game_2", attempts=5, timestamp=BASE_TS + 1_000))

    assert len(ledger.query()) == 2

def test_ranking_and_truncation_per_level(documents, identities):
    ledger = ScoreLedger(documents, identities, levels=(3, 4, 5), max_per_level=3)
    identities.set_display_name("Ana")

    for index, attempts in enumerate([8, 3, 5, 3, 9]):
        ledger.commit(draft(f"game_4_{index}", attempts=attempts, level=4, timestamp=BASE_TS + index * 10_000))
    ledger.commit(draft("game_3_0", attempts=12, level=3))

    level_4 = ledger.query(level=4)
    assert [r.attempts for r in level_4] == [3, 3, 5]
    # tie on 3 attempts: most recent first
    assert [r.round_id for r in level_4[:2]] == ["game_4_3", "game_4_1"]

    # the level 3 score is not pushed out by level 4 scores
    assert [r.round_id for r in ledger.query(level=3)] == ["game_3_0"]
    assert len(ledger.query()) == 4

def test_query_by_player_and_stats(ledger, identities, documents):
    ana = identities.set_display_name("Ana")
    ledger.commit(draft("game_1", attempts=6, level=4))
    ledger.commit(draft("game_2", attempts=4, level=4, timestamp=BASE_TS + 20_000))
    ledger.commit(draft("game_3", attempts=9, level=5, timestamp=BASE_TS + 40_000))

    # another player on the same device
    documents.discard("identity")
    identities.set_display_name("Bob")
    ledger.commit(draft("game_4", attempts=2, level=3, timestamp=BASE_TS + 60_000))

    assert [r.round_id for r in ledger.query(player_id=ana.player_id)] == ["game_2", "game_1", "game_3"]

    stats = ledger.player_stats(ana.player_id)
    assert stats.total_games == 3
    assert stats.best_attempts == 4
    assert set(stats.by_level) == {4, 5}
    assert stats.by_level[4].count == 2
    assert stats.by_level[4].best == 4
    assert stats.by_level[5].best == 9

def test_stats_without_player(ledger):
    stats = ledger.player_stats(None)

    assert stats.total_games == 0
    assert stats.best_attempts == 0
    assert stats.by_level == {}

def test_invalid_stored_entries_are_dropped(ledger, identities, documents):
    identities.set_display_name("Ana")
    ledger.commit(draft("game_1"))
    table = documents.load(SCORE_TABLE_KEY)
    table.append({"level": 4, "attempts": "many"})
    documents.save(SCORE_TABLE_KEY, table)

    assert [r.round_id for r in ledger.query()] == ["game_1"]

    documents.save(SCORE_TABLE_KEY, {"not": "a list"})
    assert ledger.query() == []

def test_clear(ledger, identities):
    identities.set_display_name("Ana")
    ledger.commit(draft("game_1"))

    ledger.clear()

    assert ledger.query() == []
