"""Tests for revenue classification and the table swap."""

import pandas as pd
import pytest
from sqlalchemy import text

import scripts.reclassify_movies as reclassify_module
from scripts.exceptions import MissingTableError, MoviePipelineError, SchemaMismatchError
from scripts.load_movies_to_db import count_rows, describe_table, list_tables, read_table, write_movies
from scripts.normalize_movies import MOVIE_COLUMNS, normalize_movies
from scripts.reclassify_movies import (
    BLOCKBUSTER,
    CLASSIFIED_COLUMNS,
    ELITE_BLOCKBUSTER,
    MOVIE_RANGES,
    NO_CLASSIFICATION,
    REGULAR,
    UNDERDOG,
    classify_revenue,
    movie_range_case_sql,
    reclassify_movies,
)

BOUNDARY_CASES = [
    (1_000_000_000, ELITE_BLOCKBUSTER),
    (728_100_001, ELITE_BLOCKBUSTER),
    (728_100_000, BLOCKBUSTER),
    (160_000_000, BLOCKBUSTER),
    (159_999_999, REGULAR),
    (130_000_000, REGULAR),
    (129_999_999, UNDERDOG),
    (50_000_000, UNDERDOG),
    (0, UNDERDOG),
    (None, NO_CLASSIFICATION),
    (float("nan"), NO_CLASSIFICATION),
]


class TestClassifyRevenue:
    """Revenue -> Movie_Range label."""

    @pytest.mark.parametrize("revenue, label", BOUNDARY_CASES)
    def test_boundaries(self, revenue, label):
        assert classify_revenue(revenue) == label

    def test_every_label_is_known(self):
        for revenue in range(0, 1_000_000_001, 7_919_191):
            assert classify_revenue(revenue) in MOVIE_RANGES

    def test_case_expression_mentions_every_label(self):
        sql = movie_range_case_sql()

        for label in MOVIE_RANGES:
            assert f"'{label}'" in sql


class TestCaseExpressionMatchesPython:
    """SQLite evaluates the CASE exactly like classify_revenue()."""

    @pytest.mark.parametrize("revenue, label", BOUNDARY_CASES[:-1])
    def test_sql_label(self, engine, revenue, label):
        with engine.connect() as conn:
            result = conn.execute(
                text(f"SELECT {movie_range_case_sql(':revenue')}"),
                {"revenue": revenue},
            ).scalar_one()

        assert result == label


@pytest.fixture
def varied_movies(raw_movies):
    movies, _ = normalize_movies(raw_movies([
        ("Elite", "01-01-2000", "Action", "D", "C1", "C2", "$1", "$728,100,001"),
        ("Block", "02-01-2000", "Action", "D", "C1", "C2", "$1", "$160,000,000"),
        ("Reg", "03-01-2000", "Drama", "D", "C1", "C2", "$1", "$130,000,000"),
        ("Under", "04-01-2000", "Drama", "D", "C1", "C2", "$1", "$129,999,999"),
        ("Unknown", "", "Horror", "D", "C1", "C2", "", "not money"),
    ]))
    return movies


class TestReclassifyMovies:
    """CREATE new_movies AS SELECT / DROP movies / RENAME."""

    def test_end_state(self, engine, sample_movies):
        write_movies(engine, sample_movies, "movies")

        result = reclassify_movies(engine, "movies", "new_movies")

        assert list_tables(engine) == ["movies"]
        assert result.rows == 2
        assert count_rows(engine, "movies") == 2
        assert list(describe_table(engine, "movies")["column"]) == CLASSIFIED_COLUMNS

        stored = read_table(engine, "movies").set_index("Title")
        assert stored.loc["A", "Release_Date"] == "2000-01-01"
        assert stored.loc["B", "Release_Date"] == "2010-06-15"
        assert stored.loc["A", "Movie_Range"] == ELITE_BLOCKBUSTER
        assert stored.loc["B", "Movie_Range"] == UNDERDOG

    def test_labels_match_python_rule(self, engine, varied_movies):
        write_movies(engine, varied_movies, "movies")

        reclassify_movies(engine)

        stored = read_table(engine, "movies")
        for revenue, label in zip(stored["Revenue"], stored["Movie_Range"]):
            assert label == classify_revenue(revenue)
        assert set(stored["Movie_Range"]) == set(MOVIE_RANGES)

    def test_range_counts(self, engine, varied_movies):
        write_movies(engine, varied_movies, "movies")

        result = reclassify_movies(engine)

        assert result.range_counts == {
            ELITE_BLOCKBUSTER: 1,
            BLOCKBUSTER: 1,
            REGULAR: 1,
            UNDERDOG: 1,
            NO_CLASSIFICATION: 1,
        }

    def test_missing_date_stays_null(self, engine, varied_movies):
        write_movies(engine, varied_movies, "movies")

        reclassify_movies(engine)

        stored = read_table(engine, "movies").set_index("Title")
        assert pd.isna(stored.loc["Unknown", "Release_Date"])
        assert stored.loc["Reg", "Release_Date"] == "2000-01-03"

    def test_empty_table(self, engine, sample_movies):
        write_movies(engine, sample_movies.iloc[:0], "movies")

        result = reclassify_movies(engine)

        assert result.rows == 0
        assert list_tables(engine) == ["movies"]
        assert set(result.range_counts.values()) == {0}

    def test_leftover_staging_table_is_replaced(self, engine, sample_movies):
        write_movies(engine, sample_movies, "movies")
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE new_movies (junk TEXT)"))

        reclassify_movies(engine)

        assert list_tables(engine) == ["movies"]

    def test_custom_table_names(self, engine, sample_movies):
        write_movies(engine, sample_movies, "films")

        result = reclassify_movies(engine, "films", "films_tmp")

        assert result.table_name == "films"
        assert list_tables(engine) == ["films"]

    def test_missing_table(self, engine):
        with pytest.raises(MissingTableError):
            reclassify_movies(engine)
        assert list_tables(engine) == []

    def test_already_classified(self, classified_engine):
        with pytest.raises(SchemaMismatchError, match="already classified"):
            reclassify_movies(classified_engine)

        assert list(describe_table(classified_engine, "movies")["column"]) == CLASSIFIED_COLUMNS

    def test_same_names_rejected(self, engine):
        with pytest.raises(ValueError):
            reclassify_movies(engine, "movies", "MOVIES")

    def test_failed_swap_rolls_back(self, engine, sample_movies, monkeypatch):
        """A failure after DROP/RENAME leaves the original table untouched."""
        write_movies(engine, sample_movies, "movies")
        real_count_rows = reclassify_module.count_rows
        calls = []

        def drifting_count(bind, table_name):
            calls.append(table_name)
            return real_count_rows(bind, table_name) + (len(calls) - 1)

        monkeypatch.setattr(reclassify_module, "count_rows", drifting_count)

        with pytest.raises(MoviePipelineError, match="row count"):
            reclassify_movies(engine)

        assert len(calls) == 2
        assert list_tables(engine) == ["movies"]
        assert list(describe_table(engine, "movies")["column"]) == MOVIE_COLUMNS
        assert count_rows(engine, "movies") == 2


class TestReleaseDateRoundTrip:
    """dd-mm-yyyy text -> epoch days -> YYYY-MM-DD after the swap."""

    @pytest.mark.parametrize("text_date, stored", [
        ("15-12-1939", "1939-12-15"),
        ("08-02-1915", "1915-02-08"),
        ("31-12-1969", "1969-12-31"),
        ("01-01-1970", "1970-01-01"),
        ("02-01-1970", "1970-01-02"),
        ("29-02-2000", "2000-02-29"),
        ("15-06-2010", "2010-06-15"),
    ])
    def test_stored_date(self, engine, raw_movies, text_date, stored):
        movies, report = normalize_movies(raw_movies([
            ("Film", text_date, "Drama", "D", "C1", "C2", "$1", "$2"),
        ]))
        write_movies(engine, movies, "movies")

        reclassify_movies(engine)

        assert report.failure_count == 0
        assert read_table(engine, "movies").loc[0, "Release_Date"] == stored

    def test_unreachable_branch_matches_sql_else(self):
        assert classify_revenue(float("nan")) == NO_CLASSIFICATION
        assert "ELSE 'No Classification'" in movie_range_case_sql()
