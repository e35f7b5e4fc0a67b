"""
============================================================================
BOX OFFICE SQL - Pipeline Runner
============================================================================
Loads movie_data.csv into SQLite and classifies every movie by revenue.

🎯 STEPS:
    1. Load the CSV (all columns as text)
    2. Normalize dates and currency amounts
    3. Write the normalized records to the movies table (replacing it)
    4. Reclassify: readable dates + Movie_Range, swapped in atomically
    5. (optional) Generate the analysis report

🔧 USAGE:
    python scripts/run_pipeline.py [--csv PATH] [--table NAME]
                                   [--database-url URL]
                                   [--policy coerce|reject]
                                   [--report] [--verify]

⚠️  IMPORTANT:
    - The target table is dropped and rebuilt on every run
    - With --policy reject the first unparseable field stops the run
      before anything is written
============================================================================
"""

import sys
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, Optional
import argparse
import logging
import time

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.engine import Engine

from config import config, setup_logging
from scripts.exceptions import MoviePipelineError
from scripts.normalize_movies import NormalizationReport, load_movies_csv, normalize_movies
from scripts.load_movies_to_db import (
    create_movie_engine, describe_table, list_tables, write_movies
)
from scripts.reclassify_movies import ReclassificationResult, reclassify_movies

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """What a full run produced."""
    rows_loaded: int
    rows_written: int
    normalization: NormalizationReport
    reclassification: ReclassificationResult
    report_files: Optional[Dict[str, Path]] = None


def run_pipeline(
    engine: Engine,
    csv_path: Path,
    table_name: str = 'movies',
    staging_name: str = 'new_movies',
    policy: str = 'coerce',
    batch_size: int = 1000,
    show_progress: bool = False
) -> PipelineResult:
    """
    Load -> normalize -> write -> reclassify, against one engine.

    Raises:
        FileNotFoundError: If csv_path does not exist
        MoviePipelineError: From any step; earlier steps are not undone,
            but each database step is itself all-or-nothing
    """
    raw = load_movies_csv(csv_path)
    movies, report = normalize_movies(raw, policy=policy)
    written = write_movies(engine, movies, table_name,
                           batch_size=batch_size, show_progress=show_progress)
    result = reclassify_movies(engine, table_name, staging_name)

    logger.info("Pipeline finished: %d loaded, %d written, %d classified",
                len(raw), written, result.rows)
    return PipelineResult(
        rows_loaded=len(raw),
        rows_written=written,
        normalization=report,
        reclassification=result,
    )


def print_verification(engine: Engine, table_name: str) -> None:
    """Print the tables in the database and the final table's layout."""
    print(f"\n🔍 Tables in database: {', '.join(list_tables(engine))}")
    print(f"\n📋 Layout of '{table_name}':")
    layout = describe_table(engine, table_name)
    for row in layout.itertuples(index=False):
        print(f"   • {row.column:<14} {row.type or '(no type)':<10} "
              f"{'NULL' if row.nullable else 'NOT NULL'}")


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Load movie_data.csv into SQLite and classify movies by revenue',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--csv',
        type=Path,
        default=config.paths.movies_file,
        help=f'Input CSV (default: {config.paths.movies_file})'
    )

    parser.add_argument(
        '--table',
        type=str,
        default=config.pipeline.table_name,
        help=f'Target table, dropped and rebuilt (default: {config.pipeline.table_name})'
    )

    parser.add_argument(
        '--database-url',
        type=str,
        default=config.database.database_url,
        help='SQLAlchemy database URL (default: DATABASE_URL from .env)'
    )

    parser.add_argument(
        '--policy',
        choices=['coerce', 'reject'],
        default=config.pipeline.parse_failure_policy,
        help='What to do with unparseable dates/amounts (default: coerce -> missing)'
    )

    parser.add_argument(
        '--report',
        action='store_true',
        help='Generate the analysis report after loading'
    )

    parser.add_argument(
        '--verify',
        action='store_true',
        help='Show tables and the final schema after loading'
    )

    args = parser.parse_args(argv)
    setup_logging(config.logging)

    if args.table.lower() == config.pipeline.staging_table_name.lower():
        print(f"\n❌ --table must differ from the staging table '{config.pipeline.staging_table_name}'")
        return 1

    print("\n" + "="*70)
    print("🎬 BOX OFFICE SQL - Movie Pipeline")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 Input: {args.csv}")
    print(f"💾 Database: {args.database_url}")
    print(f"📊 Table: {args.table}")
    print(f"⚙️  Parse failures: {args.policy}")

    start_time = time.time()
    engine = None

    try:
        engine = create_movie_engine(args.database_url, echo=config.database.echo)

        print(f"\n📥 Loading and classifying movies...")
        result = run_pipeline(
            engine,
            args.csv,
            table_name=args.table,
            staging_name=config.pipeline.staging_table_name,
            policy=args.policy,
            batch_size=config.pipeline.batch_size,
            show_progress=True,
        )

        print(f"\n   ✓ {result.normalization.summary()}")
        if result.normalization.failures:
            for failure in result.normalization.failures[:10]:
                print(f"      ⚠️  row {failure.row}, {failure.column}: {failure.value!r} ({failure.reason})")
            if result.normalization.failure_count > 10:
                print(f"      ... and {result.normalization.failure_count - 10:,} more (see log)")
        print(f"   ✓ Wrote {result.rows_written:,} rows")
        print(f"   ✓ Classified {result.reclassification.rows:,} rows")

        print(f"\n🎬 Movie ranges:")
        for label, count in result.reclassification.range_counts.items():
            print(f"   • {label}: {count:,}")

        if args.verify:
            print_verification(engine, args.table)

        if args.report:
            from scripts.analyze_movies import generate_report

            print(f"\n📊 Generating analysis report...")
            result.report_files = generate_report(
                engine, args.table,
                config.paths.reports_dir / 'analysis',
                config.pipeline.top_n_genres
            )
            print(f"   ✓ HTML report: {result.report_files['html']}")

    except FileNotFoundError as e:
        print(f"\n❌ {e}")
        print("   Put movie_data.csv in data/raw/ or pass --csv PATH")
        return 1
    except MoviePipelineError as e:
        logger.error("Pipeline failed: %s", e)
        print(f"\n❌ {e}")
        return 1
    finally:
        if engine is not None:
            engine.dispose()

    total_time = time.time() - start_time

    print("\n" + "="*70)
    print("✅ PIPELINE COMPLETE!")
    print("="*70)
    print(f"⏱️  Total time: {total_time:.1f} seconds")
    print("\n🎯 Next steps:")
    print("   1. Run: python scripts/analyze_movies.py --open")
    print("      → Charts and HTML report")
    print(f"\n📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
