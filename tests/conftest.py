"""Shared fixtures.

Every configured path is pointed at a throwaway directory before config.py
is imported anywhere, and matplotlib is forced onto a headless backend.
"""

import os
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="box_office_tests_"))

os.environ["MPLBACKEND"] = "Agg"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'data' / 'movies.sqlite'}"
os.environ["DATA_DIR"] = str(_TEST_ROOT / "data")
os.environ["RAW_DATA_DIR"] = str(_TEST_ROOT / "data" / "raw")
os.environ["REPORTS_DIR"] = str(_TEST_ROOT / "data" / "reports")
os.environ["LOGS_DIR"] = str(_TEST_ROOT / "data" / "logs")
os.environ["MOVIES_FILE"] = str(_TEST_ROOT / "data" / "raw" / "movie_data.csv")
os.environ["LOG_FILE"] = str(_TEST_ROOT / "data" / "logs" / "box_office.log")
os.environ["LOG_CONSOLE"] = "False"

import pandas as pd
import pytest

from scripts.load_movies_to_db import create_movie_engine, write_movies
from scripts.normalize_movies import MOVIE_COLUMNS, normalize_movies
from scripts.reclassify_movies import reclassify_movies

HEADER = "Title,Release_Date,Genre,Director1,Cast1,Cast2,Budget,Revenue\n"

MOVIE_A = 'A,01-01-2000,Action,Director A,Actor One,Actor Two,"$100,000,000","$1,000,000,000"'
MOVIE_B = 'B,15-06-2010,Drama,Director B,Actor Three,Actor Four,"$20,000,000","$50,000,000"'


def _raw_movies(rows):
    return pd.DataFrame(list(rows), columns=MOVIE_COLUMNS, dtype=object)


@pytest.fixture
def raw_movies():
    """Build a raw (all-text) movie frame from a list of 8-tuples."""
    return _raw_movies


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV lines under tmp_path and return the file path."""
    def _write(rows, header=HEADER, name="movie_data.csv"):
        path = tmp_path / name
        path.write_text(header + "".join(f"{row}\n" for row in rows), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def sample_csv(write_csv):
    return write_csv([MOVIE_A, MOVIE_B])


@pytest.fixture
def engine(tmp_path):
    engine = create_movie_engine(f"sqlite:///{tmp_path / 'db' / 'movies.sqlite'}")
    yield engine
    engine.dispose()


@pytest.fixture
def sample_movies():
    """The two sample movies, normalized."""
    movies, _ = normalize_movies(_raw_movies([
        ("A", "01-01-2000", "Action", "Director A", "Actor One", "Actor Two",
         "$100,000,000", "$1,000,000,000"),
        ("B", "15-06-2010", "Drama", "Director B", "Actor Three", "Actor Four",
         "$20,000,000", "$50,000,000"),
    ]))
    return movies


@pytest.fixture
def classified_engine(engine, sample_movies):
    """Engine whose 'movies' table already holds the classified sample."""
    write_movies(engine, sample_movies, "movies")
    reclassify_movies(engine, "movies", "new_movies")
    return engine
