"""
============================================================================
BOX OFFICE SQL - Revenue Reclassifier
============================================================================
Turns the staging movies table into the final, classified movies table.

🎯 PURPOSE:
    - Convert Release_Date from a day count back into a readable date
    - Add Movie_Range, a label derived from Revenue
    - Swap the new table in under the canonical name

🎬 MOVIE RANGES (first match wins, top to bottom):
    Revenue >  728,100,000                 -> Elite BlockBuster
    160,000,000 <= Revenue <= 728,100,000  -> BlockBuster
    130,000,000 <= Revenue <= 160,000,000  -> Regular
    Revenue <  130,000,000                 -> Underdog
    Revenue is NULL                        -> No Classification

🔧 SWAP:
    CREATE new_movies AS SELECT ... FROM movies
    DROP movies
    ALTER TABLE new_movies RENAME TO movies
    All three run in one transaction. Interrupted or failed runs roll back
    to the staging table, never to a database without a movies table.

🔧 USAGE:
    result = reclassify_movies(engine, "movies", "new_movies")
    print(result.range_counts)
============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

import pandas as pd
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from scripts.exceptions import MissingTableError, MoviePipelineError, SchemaMismatchError
from scripts.load_movies_to_db import Bind, count_rows, quote_identifier, table_exists
from scripts.normalize_movies import MOVIE_COLUMNS

logger = logging.getLogger(__name__)


# ============================================================================
# CLASSIFICATION RULE
# ============================================================================

ELITE_BLOCKBUSTER = 'Elite BlockBuster'
BLOCKBUSTER = 'BlockBuster'
REGULAR = 'Regular'
UNDERDOG = 'Underdog'
NO_CLASSIFICATION = 'No Classification'

MOVIE_RANGES = (ELITE_BLOCKBUSTER, BLOCKBUSTER, REGULAR, UNDERDOG, NO_CLASSIFICATION)

ELITE_THRESHOLD = 728_100_000
BLOCKBUSTER_MIN = 160_000_000
REGULAR_MIN = 130_000_000
# NOTE: Regular's upper bound and BlockBuster's lower bound are both
# 160,000,000 inclusive. BlockBuster is tested first, so it owns that value.

CLASSIFIED_COLUMNS = MOVIE_COLUMNS + ['Movie_Range']

# Julian day number of 1970-01-01 00:00 UTC
EPOCH_JULIAN_DAY = 2440587.5


def classify_revenue(revenue: Any) -> str:
    """
    Movie_Range label for one revenue value.

    Same rule as movie_range_case_sql(), evaluated in Python.
    """
    if revenue is None or pd.isna(revenue):
        return NO_CLASSIFICATION
    if revenue > ELITE_THRESHOLD:
        return ELITE_BLOCKBUSTER
    if BLOCKBUSTER_MIN <= revenue <= ELITE_THRESHOLD:
        return BLOCKBUSTER
    if REGULAR_MIN <= revenue <= BLOCKBUSTER_MIN:
        return REGULAR
    if revenue < REGULAR_MIN:
        return UNDERDOG
    # Unreachable for real numbers; mirrors the ELSE of the SQL CASE
    return NO_CLASSIFICATION


def _sql_string(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def movie_range_case_sql(column: str = 'Revenue') -> str:
    """The classification rule as a SQL CASE expression over column."""
    return (
        "CASE\n"
        f"            WHEN {column} > {ELITE_THRESHOLD} THEN {_sql_string(ELITE_BLOCKBUSTER)}\n"
        f"            WHEN {column} BETWEEN {BLOCKBUSTER_MIN} AND {ELITE_THRESHOLD} THEN {_sql_string(BLOCKBUSTER)}\n"
        f"            WHEN {column} BETWEEN {REGULAR_MIN} AND {BLOCKBUSTER_MIN} THEN {_sql_string(REGULAR)}\n"
        f"            WHEN {column} < {REGULAR_MIN} THEN {_sql_string(UNDERDOG)}\n"
        f"            ELSE {_sql_string(NO_CLASSIFICATION)}\n"
        "        END"
    )


def derive_classified_sql(bind: Bind, source: str, target: str) -> str:
    """
    CREATE TABLE target AS SELECT ... FROM source.

    Release_Date in source is a day count since 1970-01-01, negative before
    that. Adding it to the Julian day number of the epoch works for either
    sign; DATE() turns the result into YYYY-MM-DD text. A NULL day count
    stays NULL.
    """
    return f"""
        CREATE TABLE {quote_identifier(bind, target)} AS
        SELECT
            Title,
            DATE({EPOCH_JULIAN_DAY} + CAST(Release_Date AS INTEGER)) AS Release_Date,
            Genre,
            Director1,
            Cast1,
            Cast2,
            Budget,
            Revenue,
            {movie_range_case_sql('Revenue')} AS Movie_Range
        FROM {quote_identifier(bind, source)}
    """


# ============================================================================
# RECLASSIFICATION
# ============================================================================

@dataclass
class ReclassificationResult:
    """Outcome of a reclassification swap."""
    table_name: str
    rows: int
    range_counts: Dict[str, int] = field(default_factory=dict)


def _check_source_layout(bind: Bind, table_name: str) -> None:
    columns = [col['name'] for col in inspect(bind).get_columns(table_name)]
    if 'Movie_Range' in columns:
        raise SchemaMismatchError(f"Table '{table_name}' is already classified")
    if sorted(columns) != sorted(MOVIE_COLUMNS):
        raise SchemaMismatchError(
            f"Table '{table_name}' has columns {columns}, expected {MOVIE_COLUMNS}"
        )


def reclassify_movies(
    engine: Engine,
    table_name: str = 'movies',
    staging_name: str = 'new_movies'
) -> ReclassificationResult:
    """
    Replace table_name with its classified version.

    Args:
        engine: Store handle from create_movie_engine
        table_name: Canonical table holding normalized movies
        staging_name: Scratch name for the derived table

    Returns:
        ReclassificationResult with the row count and per-range counts

    Raises:
        MissingTableError: If table_name does not exist
        SchemaMismatchError: If table_name isn't a normalized movies table
        MoviePipelineError: If the swap would change the row count
    """
    if table_name.lower() == staging_name.lower():
        raise ValueError("staging_name must differ from table_name")

    with engine.begin() as conn:
        if not table_exists(conn, table_name):
            raise MissingTableError(
                f"Table '{table_name}' does not exist; write the normalized movies first"
            )
        _check_source_layout(conn, table_name)

        rows_before = count_rows(conn, table_name)
        source = quote_identifier(conn, table_name)
        staging = quote_identifier(conn, staging_name)

        # Leftover from an earlier, interrupted run
        conn.execute(text(f"DROP TABLE IF EXISTS {staging}"))
        conn.execute(text(derive_classified_sql(conn, table_name, staging_name)))
        conn.execute(text(f"DROP TABLE {source}"))
        conn.execute(text(f"ALTER TABLE {staging} RENAME TO {source}"))

        rows_after = count_rows(conn, table_name)
        if rows_after != rows_before:
            raise MoviePipelineError(
                f"Reclassification changed the row count ({rows_before} -> {rows_after}); rolled back"
            )

        range_counts = {label: 0 for label in MOVIE_RANGES}
        for label, count in conn.execute(text(
            f"SELECT Movie_Range, COUNT(*) FROM {source} GROUP BY Movie_Range"
        )):
            range_counts[label] = count

    logger.info("Reclassified %d rows in table %s: %s", rows_after, table_name, range_counts)
    return ReclassificationResult(table_name=table_name, rows=rows_after, range_counts=range_counts)
