from __future__ import annotations

from datetime import date, datetime

import pytest

from champions_form.filtering import chunk_plays, filter_plays
from champions_form.tables import FormTables

from conftest import make_play


def _ten_plays() -> list:
    plays = [
        make_play(play_id=f"ok{i}", date=f"2024-02-{10 + i:02d}")
        for i in range(7)
    ]
    plays.append(make_play(play_id="basic", date="2024-02-20",
                           heroes=(("Captain Marvel", "Basic", 1),)))
    plays.append(make_play(play_id="nomods", date="2024-02-21", villain="Klaw", modular_sets=()))
    plays.append(make_play(play_id="early", date="2023-12-31"))
    return plays


def test_end_to_end_filter_and_partition() -> None:
    result = filter_plays(_ten_plays(), "2024-01-01")

    assert len(result.plays) == 7
    assert result.stats.total == 10
    assert result.stats.skipped_basic_aspect == 1
    assert result.stats.skipped_empty_modular == 1
    assert result.stats.skipped_before_date == 1

    chunks = chunk_plays(result.plays, min(8, len(result.plays)))
    assert len(chunks) == 7
    assert all(len(chunk) == 1 for chunk in chunks)


def test_scenario_without_modular_page_keeps_empty_modular_plays() -> None:
    plays = [make_play(play_id="wc", villain="Wrecking Crew", modular_sets=())]

    result = filter_plays(plays)

    assert [p.id for p in result.plays] == ["wc"]
    assert result.stats.skipped_empty_modular == 0


def test_basic_aspect_on_any_hero_rejects_the_play() -> None:
    plays = [make_play(heroes=(("Captain Marvel", "Justice", 1), ("Iron Man", "Basic", 1)))]

    result = filter_plays(plays)

    assert result.plays == []
    assert result.stats.skipped_basic_aspect == 1


def test_each_rejected_play_is_counted_once() -> None:
    plays = [make_play(date="2020-01-01", heroes=(("Captain Marvel", "Basic", 1),), modular_sets=())]

    stats = filter_plays(plays, date(2024, 1, 1)).stats

    assert (stats.skipped_basic_aspect, stats.skipped_empty_modular, stats.skipped_before_date) == (1, 0, 0)


def test_start_date_is_inclusive() -> None:
    plays = [make_play(play_id="same", date="2024-01-01"), make_play(play_id="before", date="2023-12-31")]

    result = filter_plays(plays, date(2024, 1, 1))

    assert [p.id for p in result.plays] == ["same"]


def test_output_is_sorted_and_ties_keep_input_order() -> None:
    plays = [
        make_play(play_id="c", date="2024-03-03"),
        make_play(play_id="a1", date="2024-03-01"),
        make_play(play_id="b", date="2024-03-02"),
        make_play(play_id="a2", date="2024-03-01"),
    ]

    result = filter_plays(plays)

    assert [p.id for p in result.plays] == ["a1", "a2", "b", "c"]


def test_filtering_is_idempotent() -> None:
    once = filter_plays(_ten_plays(), "2024-01-01")
    twice = filter_plays(once.plays, "2024-01-01")

    assert twice.plays == once.plays
    assert twice.stats.total == len(once.plays)


def test_injected_tables_change_the_modular_exception() -> None:
    plays = [make_play(play_id="klaw", villain="Klaw", modular_sets=())]
    tables = FormTables(scenarios_without_modular_page=frozenset({"Klaw"}))

    assert [p.id for p in filter_plays(plays, tables=tables).plays] == ["klaw"]


@pytest.mark.parametrize("n, workers", [(10, 4), (7, 3), (9, 9), (8, 3), (1, 1), (100, 8), (5, 2)])
def test_chunks_cover_input_with_balanced_sizes(n, workers) -> None:
    items = list(range(n))

    chunks = chunk_plays(items, workers)

    assert len(chunks) == min(workers, n)
    assert [x for chunk in chunks for x in chunk] == items
    sizes = [len(chunk) for chunk in chunks]
    assert max(sizes) - min(sizes) <= 1
    assert sizes == sorted(sizes, reverse=True)


def test_more_workers_than_plays_gives_one_play_per_chunk() -> None:
    assert chunk_plays(["a", "b", "c"], 8) == [["a"], ["b"], ["c"]]


def test_empty_input_has_no_chunks() -> None:
    assert chunk_plays([], 4) == []


def test_non_positive_chunk_count_is_rejected() -> None:
    with pytest.raises(ValueError):
        chunk_plays([1, 2, 3], 0)


def test_datetime_start_date_compares_by_day() -> None:
    plays = [make_play(play_id="same", date="2024-01-01"), make_play(play_id="after", date="2024-01-02")]

    result = filter_plays(plays, datetime(2024, 1, 1, 18, 30))

    assert [p.id for p in result.plays] == ["same", "after"]
    assert result.start_date == date(2024, 1, 1)
