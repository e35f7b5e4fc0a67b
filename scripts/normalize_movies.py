"""
============================================================================
BOX OFFICE SQL - Movie Loader & Normalizer
============================================================================
Reads the raw movie CSV and turns its text fields into typed values.

🎯 PURPOSE:
    - Load movie_data.csv with every column kept as text
    - Parse Release_Date (day-month-year) into a calendar date
    - Strip currency symbols and thousands separators from Budget/Revenue
    - Keep Title, Genre, Director1, Cast1, Cast2 exactly as they came in
    - Report every field that could not be parsed

🔧 DATA TYPE HANDLING:
    - Release_Date: "15-06-2010", "15/06/2010", "15 Jun 2010" -> 2010-06-15
    - Budget/Revenue: "$1,234,567" -> 1234567.0
    - Blank cells: missing (NaT / NaN), never an error
    - Unparseable cells: missing under policy "coerce", fatal under "reject"

🔧 USAGE:
    from scripts.normalize_movies import load_movies_csv, normalize_movies

    raw = load_movies_csv(config.paths.movies_file)
    movies, report = normalize_movies(raw, policy="coerce")
    print(report.summary())
============================================================================
"""

import logging
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from scripts.exceptions import (
    FieldParseError,
    MalformedCurrencyError,
    MalformedDateError,
    SchemaMismatchError,
)

logger = logging.getLogger(__name__)


# ============================================================================
# COLUMN LAYOUT
# ============================================================================

MOVIE_COLUMNS: List[str] = [
    'Title',
    'Release_Date',
    'Genre',
    'Director1',
    'Cast1',
    'Cast2',
    'Budget',
    'Revenue',
]

TEXT_COLUMNS: List[str] = ['Title', 'Genre', 'Director1', 'Cast1', 'Cast2']
CURRENCY_COLUMNS: List[str] = ['Budget', 'Revenue']

# Headers seen in the wild -> canonical name
COLUMN_ALIASES: Dict[str, str] = {
    'Movie_Title': 'Title',
}

# Day always comes first; month may be numeric, abbreviated or spelled out
DEFAULT_DATE_FORMATS: Tuple[str, ...] = (
    '%d-%m-%Y',
    '%d/%m/%Y',
    '%d.%m.%Y',
    '%d %m %Y',
    '%d-%b-%Y',
    '%d %b %Y',
    '%d %B %Y',
)

PARSE_FAILURE_POLICIES = ('coerce', 'reject')

# Thousands separators removed before parsing a currency amount
_SEPARATORS = {',', ' ', '\t', '\u00a0', '\u202f', '\u2009'}


# ============================================================================
# PARSE REPORT
# ============================================================================

@dataclass
class ParseFailure:
    """One field that fell back to the missing marker."""
    row: Any
    column: str
    value: Any
    reason: str


@dataclass
class NormalizationReport:
    """What happened while normalizing a batch of records."""
    rows: int = 0
    failures: List[ParseFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def add(self, error: FieldParseError) -> None:
        self.failures.append(
            ParseFailure(row=error.row, column=error.column, value=error.value, reason=error.reason)
        )

    def failures_for(self, column: str) -> List[ParseFailure]:
        return [f for f in self.failures if f.column == column]

    def summary(self) -> str:
        if not self.failures:
            return f"{self.rows:,} records normalized, no parse failures"
        per_column = ", ".join(
            f"{column}={len(self.failures_for(column))}"
            for column in ['Release_Date'] + CURRENCY_COLUMNS
            if self.failures_for(column)
        )
        return (
            f"{self.rows:,} records normalized, "
            f"{self.failure_count:,} fields set to missing ({per_column})"
        )


# ============================================================================
# FIELD PARSERS
# ============================================================================

def _is_blank(value: Any) -> bool:
    """None, NaN and whitespace-only strings all mean 'no value'."""
    if value is None:
        return True
    if isinstance(value, float) and value != value:
        return True
    return isinstance(value, str) and not value.strip()


def parse_release_date(
    value: Any,
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS
) -> Optional[date]:
    """
    Parse a day-month-year date string.

    Args:
        value: Raw text such as "01-01-2000" or "15/06/2010"
        date_formats: strptime formats tried in order

    Returns:
        The calendar date, or None for a blank cell

    Raises:
        MalformedDateError: If no format matches
    """
    if _is_blank(value):
        return None

    text = str(value).strip()
    for fmt in date_formats:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        # Must fit in a pandas timestamp column
        if not (pd.Timestamp.min.date() <= parsed <= pd.Timestamp.max.date()):
            raise MalformedDateError(value)
        return parsed

    raise MalformedDateError(value)


def parse_currency(value: Any) -> Optional[float]:
    """
    Parse a currency amount like "$1,234,567".

    Every currency symbol (any Unicode "Sc" character) and every thousands
    separator is stripped; the remainder must be a plain non-negative number.

    Args:
        value: Raw text or number

    Returns:
        The amount as float, or None for a blank cell

    Raises:
        MalformedCurrencyError: If the residue isn't a finite non-negative number
    """
    if _is_blank(value):
        return None

    text = str(value).strip()
    residue = ''.join(
        ch for ch in text
        if ch not in _SEPARATORS and unicodedata.category(ch) != 'Sc'
    )

    try:
        amount = float(residue)
    except ValueError:
        raise MalformedCurrencyError(value) from None

    # float() happily accepts "nan" and "inf"
    if amount != amount or amount in (float('inf'), float('-inf')) or amount < 0:
        raise MalformedCurrencyError(value)

    return amount


# ============================================================================
# LOADING
# ============================================================================

def load_movies_csv(file_path: Path) -> pd.DataFrame:
    """
    Load the movie CSV with every column as text.

    Args:
        file_path: Path to movie_data.csv

    Returns:
        DataFrame with exactly MOVIE_COLUMNS, in that order

    Raises:
        FileNotFoundError: If the file does not exist
        SchemaMismatchError: If a required header is missing
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Movie file not found: {file_path}")

    # keep_default_na=False: "NA" or "" stay text until the parsers see them
    df = pd.read_csv(file_path, dtype=str, keep_default_na=False, encoding='utf-8-sig')

    renames = {
        alias: canonical for alias, canonical in COLUMN_ALIASES.items()
        if alias in df.columns and canonical not in df.columns
    }
    if renames:
        df = df.rename(columns=renames)

    missing = [c for c in MOVIE_COLUMNS if c not in df.columns]
    if missing:
        raise SchemaMismatchError(
            f"{file_path.name} is missing required column(s): {', '.join(missing)}. "
            f"Found: {', '.join(df.columns)}"
        )

    extra = [c for c in df.columns if c not in MOVIE_COLUMNS]
    if extra:
        logger.warning("Ignoring unexpected column(s) in %s: %s", file_path.name, ', '.join(extra))

    logger.info("Loaded %d movie records from %s", len(df), file_path)
    return df[MOVIE_COLUMNS].copy()


# ============================================================================
# NORMALIZATION
# ============================================================================

def _parse_column(
    raw: pd.DataFrame,
    column: str,
    parser: Callable[[Any], Any],
    policy: str,
    report: NormalizationReport
) -> List[Any]:
    """Run parser over one column, applying the failure policy per field."""
    values = []
    for row, value in raw[column].items():
        try:
            values.append(parser(value))
        except FieldParseError as exc:
            exc.at(row, column)
            if policy == 'reject':
                raise
            logger.warning("Setting %s to missing: %s", column, exc)
            report.add(exc)
            values.append(None)
    return values


def normalize_movies(
    raw: pd.DataFrame,
    policy: str = 'coerce',
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS
) -> Tuple[pd.DataFrame, NormalizationReport]:
    """
    Convert raw text records into typed movie records.

    The input frame is not modified. The output has the same length, order
    and index as the input.

    Args:
        raw: Records as loaded by load_movies_csv
        policy: "coerce" (bad field -> missing) or "reject" (bad field -> raise)
        date_formats: strptime formats for Release_Date

    Returns:
        (normalized DataFrame, NormalizationReport)

    Raises:
        SchemaMismatchError: If raw lacks one of MOVIE_COLUMNS
        MalformedDateError / MalformedCurrencyError: Only with policy "reject"
    """
    if policy not in PARSE_FAILURE_POLICIES:
        raise ValueError(f"policy must be one of {PARSE_FAILURE_POLICIES}, got '{policy}'")

    missing = [c for c in MOVIE_COLUMNS if c not in raw.columns]
    if missing:
        raise SchemaMismatchError(f"Cannot normalize, missing column(s): {', '.join(missing)}")

    report = NormalizationReport(rows=len(raw))
    normalized = raw[MOVIE_COLUMNS].copy()

    dates = _parse_column(
        raw, 'Release_Date',
        lambda v: parse_release_date(v, date_formats),
        policy, report
    )
    normalized['Release_Date'] = pd.to_datetime(pd.Series(dates, index=raw.index, dtype=object))

    for column in CURRENCY_COLUMNS:
        amounts = _parse_column(raw, column, parse_currency, policy, report)
        normalized[column] = pd.Series(amounts, index=raw.index, dtype='float64')

    logger.info(report.summary())
    return normalized, report
