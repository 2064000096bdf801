"""Tests for grouping ratings into carts."""

import pytest

from streetfood import aggregator
from streetfood.models import LocationGroup


def test_group_empty():
    assert aggregator.group([]) == []


def test_group_single_rating(make_rating):
    rating = make_rating(score=3)
    groups = aggregator.group([rating])

    assert len(groups) == 1
    assert groups[0].review_count == 1
    assert groups[0].average_score == 3.0
    assert groups[0].ratings == (rating,)


def test_group_average_of_five(make_rating):
    ratings = [make_rating(score=s, seconds=i) for i, s in enumerate([5, 4, 5, 3, 4])]
    groups = aggregator.group(ratings)

    assert len(groups) == 1
    assert groups[0].review_count == 5
    assert groups[0].average_score == pytest.approx(4.2)


def test_neighbouring_carts_stay_separate(make_rating):
    pad_thai = make_rating(name="Mama's Pad Thai", lat=13.7563, lon=100.5018)
    som_tam = make_rating(name="Som Tam Stand", lat=13.7563, lon=100.5018)
    groups = aggregator.group([pad_thai, som_tam])

    assert sorted(g.display_name for g in groups) == ["Mama's Pad Thai", "Som Tam Stand"]


def test_display_identity_comes_from_first_rating(make_rating):
    first = make_rating(name="Som Tam Stand", lat=13.75630)
    second = make_rating(name="  som tam stand", lat=13.75632, seconds=10)
    [group] = aggregator.group([first, second])

    assert group.display_name == "Som Tam Stand"
    assert group.latitude == 13.75630
    assert group.review_count == 2


def test_duplicate_location_rows_merge_into_one_group(make_rating):
    a = make_rating(location_id="loc-a", lat=13.00010)
    b = make_rating(location_id="loc-b", lat=13.00012, score=1)
    [group] = aggregator.group([a, b])

    assert group.review_count == 2
    assert group.average_score == 3.0


def test_unlocated_ratings_are_left_out(make_rating):
    located = make_rating()
    unlocated = make_rating(lat=None, lon=None)

    groups = aggregator.group([located, unlocated])
    assert len(groups) == 1
    assert groups[0].ratings == (located,)


def test_group_derived_attributes(make_rating):
    old = make_rating(score=2, seconds=0, review_text="Too salty")
    new = make_rating(score=4, seconds=60)
    blank = make_rating(score=5, seconds=30, review_text="   ")
    [group] = aggregator.group([old, new, blank])

    assert group.most_recent == new
    assert group.reviews_with_text == [old]
    assert group.reviews_with_text_count == 1


def test_empty_group_average_is_zero():
    group = LocationGroup(key="k", display_name="Unknown", latitude=0.0, longitude=0.0, ratings=())
    assert group.average_score == 0.0
    assert group.most_recent is None


def test_nearby_filters_and_sorts_by_distance(make_rating):
    here = make_rating(name="Here", lat=13.75630, lon=100.50180)
    close = make_rating(name="Close", lat=13.75660, lon=100.50180)  # ~33 m
    far = make_rating(name="Far", lat=13.76000, lon=100.50180)  # ~410 m
    groups = aggregator.group([close, far, here])

    result = aggregator.nearby(groups, 13.75630, 100.50180, radius_m=50)
    assert [g.display_name for g in result] == ["Here", "Close"]


def test_author_summary(make_rating):
    ratings = [
        make_rating(score=5, author_id="me", name="A"),
        make_rating(score=3, author_id="me", name="A", seconds=5),
        make_rating(score=4, author_id="me", name="B"),
        make_rating(score=1, author_id="someone-else"),
    ]
    summary = aggregator.author_summary(ratings, "me")

    assert summary.rating_count == 3
    assert summary.unique_places == 2
    assert summary.average_given == pytest.approx(4.0)


def test_author_summary_without_ratings():
    summary = aggregator.author_summary([], "me")
    assert summary.rating_count == 0
    assert summary.average_given == 0.0
