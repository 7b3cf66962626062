from types import SimpleNamespace

import pytest

from movietracker.categories import Category, bucket_for, normalize_category, partition_by_category


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Watching", Category.WATCHING),
        ("watching", Category.WATCHING),
        ("Will Watch", Category.WILL_WATCH),
        ("will watch", Category.WILL_WATCH),
        ("will-watch", Category.WILL_WATCH),
        ("Already Watched", Category.ALREADY_WATCHED),
        ("already watched", Category.ALREADY_WATCHED),
        ("already-watched", Category.ALREADY_WATCHED),
    ],
)
def test_known_labels_normalize_to_canonical_values(label, expected):
    category = normalize_category(label)
    assert category is expected
    assert category.value in {"watching", "will-watch", "already-watched"}


@pytest.mark.parametrize("label", ["WATCHING", "Will-Watch", "finished", ""])
def test_unknown_labels_are_not_normalized(label):
    assert normalize_category(label) is None


def test_bucket_lookup_ignores_case():
    assert bucket_for("Watching") is Category.WATCHING
    assert bucket_for("WILL WATCH") is Category.WILL_WATCH
    assert bucket_for("Already-Watched") is Category.ALREADY_WATCHED
    assert bucket_for("some-other-label") is None
    assert bucket_for(None) is None


def test_partition_keeps_order_and_drops_unknown():
    entries = [
        SimpleNamespace(movie_id="1", category="Watching"),
        SimpleNamespace(movie_id="2", category="will watch"),
        SimpleNamespace(movie_id="3", category="some-other-label"),
        SimpleNamespace(movie_id="4", category="watching"),
        SimpleNamespace(movie_id="5", category="already watched"),
    ]

    buckets = partition_by_category(entries)

    assert list(buckets) == ["watching", "will-watch", "already-watched"]
    assert [e.movie_id for e in buckets["watching"]] == ["1", "4"]
    assert [e.movie_id for e in buckets["will-watch"]] == ["2"]
    assert [e.movie_id for e in buckets["already-watched"]] == ["5"]


def test_partition_of_nothing_has_three_empty_buckets():
    assert partition_by_category([]) == {"watching": [], "will-watch": [], "already-watched": []}
