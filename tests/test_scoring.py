import math
from datetime import timedelta

import pytest

from stream_rec.models import ContentType, DurationBucket
from stream_rec.profile import UserPreferenceProfile, build_profile
from stream_rec.scoring import CandidateScorer, days_between, recency_factor
from stream_rec.similarity import SimilarityCache
from stream_rec.weights import ScoringWeights


def test_scorer_requires_reference_time():
    with pytest.raises(ValueError):
        CandidateScorer()


def test_base_score_popularity_only(make_item, now):
    scorer = CandidateScorer(now=now)
    candidate = make_item(1, popularity=50)

    assert scorer.base_score(candidate, UserPreferenceProfile()) == pytest.approx(0.5)


def test_base_score_profile_matches(make_item, now):
    scorer = CandidateScorer(now=now)
    profile = UserPreferenceProfile(
        favorite_genres=("drama",),
        favorite_categories=(7,),
        favorite_content_types=(ContentType.MOVIE,),
        favorite_tags=("noir", "crime"),
        preferred_duration=DurationBucket.LONG,
        prefers_premium=True,
    )
    candidate = make_item(
        1,
        genre="drama",
        category_id=7,
        content_type=ContentType.MOVIE,
        tags=("noir", "heist"),
        duration=4000,
        is_premium=True,
    )

    expected = 0.8 + 0.5 + 3 + 2.5 + 1.5 + (1 / 2) * 2
    assert scorer.base_score(candidate, profile) == pytest.approx(expected)


def test_premium_match_applies_to_free_viewers(make_item, now):
    scorer = CandidateScorer(now=now)
    profile = UserPreferenceProfile(prefers_premium=False)

    assert scorer.base_score(make_item(1, is_premium=False), profile) == pytest.approx(0.8)
    assert scorer.base_score(make_item(2, is_premium=True), profile) == 0.0


def test_recency_factor_decays():
    assert recency_factor(0, 1.5) == pytest.approx(2.5)
    assert recency_factor(10, 1.5) == pytest.approx(1 + math.exp(-1) * 1.5)
    assert recency_factor(365, 1.5) == pytest.approx(1.0, abs=1e-6)


def test_days_between_clamps_future_timestamps(now):
    assert days_between(now + timedelta(days=3), now) == 0.0
    assert days_between(now - timedelta(hours=36), now) == pytest.approx(1.5)


def test_collaborative_contribution_matches_formula(make_item, make_entry, now):
    watched = make_item(1, genre="drama")
    candidate = make_item(2, genre="drama")
    history = [make_entry(1, completed=True, watched_at=now - timedelta(days=10))]
    scorer = CandidateScorer(now=now)

    score = scorer.score(candidate, UserPreferenceProfile(), history, [watched, candidate])

    expected = 3.0 * 2.0 * (1 + math.exp(-1.0) * 1.5)
    assert score == pytest.approx(expected)


def test_partial_watch_scales_by_watch_time(make_item, make_entry, now):
    watched = make_item(1, genre="drama")
    candidate = make_item(2, genre="drama")
    history = [make_entry(1, completed=False, pct=50)]
    scorer = CandidateScorer(now=now)

    score = scorer.score(candidate, UserPreferenceProfile(), history, [watched, candidate])

    assert score == pytest.approx(3.0 * 0.5 * 0.8 * 2.5)


def test_completed_watch_outweighs_partial_watch(make_item, make_entry, now):
    candidate = make_item(10, genre="drama", category_id=1)
    finished = make_item(1, genre="drama", category_id=1)
    abandoned = make_item(2, genre="drama", category_id=1)
    catalog = [candidate, finished, abandoned]
    scorer = CandidateScorer(now=now)
    empty = UserPreferenceProfile()

    completed_score = scorer.score(candidate, empty, [make_entry(1, completed=True, pct=100)], catalog)
    partial_score = scorer.score(candidate, empty, [make_entry(2, completed=False, pct=99)], catalog)

    assert completed_score > partial_score > 0


def test_every_history_entry_counts(make_item, make_entry, now):
    watched = make_item(1, genre="drama")
    candidate = make_item(2, genre="drama")
    catalog = [watched, candidate]
    scorer = CandidateScorer(now=now)
    empty = UserPreferenceProfile()

    once = scorer.score(candidate, empty, [make_entry(1)], catalog)
    twice = scorer.score(candidate, empty, [make_entry(1), make_entry(1)], catalog)

    assert twice == pytest.approx(2 * once)


def test_history_outside_catalog_is_skipped(make_item, make_entry, now):
    candidate = make_item(2, genre="drama")
    scorer = CandidateScorer(now=now)

    assert scorer.score(candidate, UserPreferenceProfile(), [make_entry(404)], [candidate]) == 0.0


def test_high_ratings_pull_similar_content(make_item, now):
    rated = make_item(1, genre="drama")
    candidate = make_item(2, genre="drama")
    catalog = [rated, candidate]
    scorer = CandidateScorer(now=now)

    five = scorer.score(candidate, UserPreferenceProfile(ratings={1: 5}), [], catalog)
    four = scorer.score(candidate, UserPreferenceProfile(ratings={1: 4}), [], catalog)
    three = scorer.score(candidate, UserPreferenceProfile(ratings={1: 3}), [], catalog)

    assert five == pytest.approx(3.0)
    assert four == pytest.approx(3.0 * 0.8)
    assert three == 0.0


def test_explicit_ratings_used_when_profile_has_none(make_item, now):
    rated = make_item(1, genre="drama")
    candidate = make_item(2, genre="drama")
    scorer = CandidateScorer(now=now)

    score = scorer.score(candidate, UserPreferenceProfile(), [], [rated, candidate], ratings={1: 5})

    assert score == pytest.approx(3.0)


def test_rated_items_missing_from_catalog_are_skipped(make_item, now):
    candidate = make_item(2, genre="drama")
    scorer = CandidateScorer(now=now)

    assert scorer.score(candidate, UserPreferenceProfile(ratings={99: 5}), [], [candidate]) == 0.0


def test_score_all_matches_individual_scores(make_item, make_entry, now):
    catalog = [
        make_item(1, genre="drama", tags=("a",), duration=1000),
        make_item(2, genre="drama", tags=("a", "b"), duration=1200, popularity=40),
        make_item(3, genre="comedy", tags=("b",), duration=5000, is_premium=True),
    ]
    history = [make_entry(1, watched_at=now - timedelta(days=2))]
    profile = build_profile(history, catalog, {1: 5})
    scorer = CandidateScorer(now=now)

    batch = scorer.score_all(catalog[1:], profile, history, catalog)
    single = [scorer.score(c, profile, history, catalog) for c in catalog[1:]]

    assert list(batch) == pytest.approx(single)


def test_custom_weights_and_cache_give_same_scores(make_item, make_entry, now):
    catalog = [make_item(1, genre="drama"), make_item(2, genre="drama")]
    history = [make_entry(1)]
    weights = ScoringWeights(genre=1.0, recency=0.0)

    plain = CandidateScorer(weights, now=now)
    cached = CandidateScorer(weights, now=now, similarity_cache=SimilarityCache(weights))

    expected = 1.0 * 2.0 * 1.0
    empty = UserPreferenceProfile()
    assert plain.score(catalog[1], empty, history, catalog) == pytest.approx(expected)
    assert cached.score(catalog[1], empty, history, catalog) == pytest.approx(expected)


def test_scorer_rejects_cache_with_other_weights(now):
    from stream_rec.models import InvalidArgument

    with pytest.raises(InvalidArgument):
        CandidateScorer(ScoringWeights(genre=0.0), now=now, similarity_cache=SimilarityCache())
