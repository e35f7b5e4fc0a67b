"""
============================================================================
BOX OFFICE SQL - Movie Analytics
============================================================================
Read-only aggregate queries over the classified movies table, rendered as
charts and an HTML report.

🎯 PURPOSE:
    - Count movies released each year
    - Total revenue per year
    - Top genres by total revenue
    - Budget vs revenue, with Pearson correlation
    - How many movies fall in each Movie_Range

📊 VISUALIZATIONS (5 charts):
    1. movies_per_year.png      - bar chart with counts on top
    2. revenue_per_year.png     - bar chart, axis in $ billions
    3. revenue_by_genre.png     - horizontal bars, top N genres
    4. budget_vs_revenue.png    - scatter + regression line, r annotated
    5. movies_per_range.png     - bar chart of Movie_Range counts

🔧 USAGE:
    python scripts/analyze_movies.py [--table NAME] [--top-n N] [--open]

    Options:
        --table NAME      Table to analyze (default: config MOVIES_TABLE)
        --top-n N         Genres in the revenue-by-genre chart (default: 5)
        --output-dir DIR  Where to write the report (default: data/reports/analysis)
        --open            Open report in browser after generation

⚠️  IMPORTANT:
    - Nothing here writes to the database; every query is a SELECT
    - Run scripts/run_pipeline.py first so the classified table exists

📊 OUTPUT:
    - data/reports/analysis/analysis_report.html
    - data/reports/analysis/figures/*.png
============================================================================
"""

import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional
import argparse
import logging

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.ticker import FuncFormatter
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from scripts.exceptions import MissingTableError, MoviePipelineError, SchemaMismatchError
from scripts.load_movies_to_db import create_movie_engine, quote_identifier, table_exists
from scripts.reclassify_movies import MOVIE_RANGES

logger = logging.getLogger(__name__)

# Set style
plt.style.use('seaborn-v0_8-darkgrid')
sns.set_palette("husl")


# ============================================================================
# QUERIES
# ============================================================================

def _read_query(engine: Engine, table_name: str, sql: str, **params) -> pd.DataFrame:
    """Run one SELECT with {table} filled in; the connection is never committed."""
    if not table_exists(engine, table_name):
        raise MissingTableError(f"Table '{table_name}' does not exist; run the pipeline first")

    with engine.connect() as conn:
        statement = text(sql.format(table=quote_identifier(conn, table_name)))
        try:
            return pd.read_sql(statement, conn, params=params or None)
        except OperationalError as e:
            # e.g. no Movie_Range column: the table was never reclassified
            raise SchemaMismatchError(f"Cannot analyze table '{table_name}': {e.orig}") from e


def movies_per_year(engine: Engine, table_name: str = 'movies') -> pd.DataFrame:
    """Number of movies released each year (Year, number_of_movies)."""
    return _read_query(engine, table_name, """
        SELECT
            STRFTIME('%Y', Release_Date) AS Year,
            COUNT(Title) AS number_of_movies
        FROM {table}
        GROUP BY Year
        ORDER BY Year
    """)


def revenue_per_year(engine: Engine, table_name: str = 'movies') -> pd.DataFrame:
    """Total revenue per release year (Year, total_revenue)."""
    return _read_query(engine, table_name, """
        SELECT
            STRFTIME('%Y', Release_Date) AS Year,
            SUM(Revenue) AS total_revenue
        FROM {table}
        GROUP BY Year
        ORDER BY Year
    """)


def revenue_by_genre(engine: Engine, table_name: str = 'movies', top_n: int = 5) -> pd.DataFrame:
    """Top genres by total revenue (Genre, total_revenue), highest first."""
    return _read_query(engine, table_name, """
        SELECT
            Genre,
            SUM(Revenue) AS total_revenue
        FROM {table}
        GROUP BY Genre
        ORDER BY total_revenue DESC
        LIMIT :top_n
    """, top_n=int(top_n))


def budget_vs_revenue(engine: Engine, table_name: str = 'movies') -> pd.DataFrame:
    """Budget/Revenue pairs, biggest budgets first."""
    return _read_query(engine, table_name, """
        SELECT Budget, Revenue
        FROM {table}
        ORDER BY Budget DESC, Revenue DESC
    """)


def movies_per_range(engine: Engine, table_name: str = 'movies') -> pd.DataFrame:
    """Movie count for every Movie_Range label, including empty ones."""
    counts = _read_query(engine, table_name, """
        SELECT Movie_Range, COUNT(*) AS number_of_movies
        FROM {table}
        GROUP BY Movie_Range
    """)
    counts = counts.set_index('Movie_Range').reindex(list(MOVIE_RANGES), fill_value=0)
    return counts.rename_axis('Movie_Range').reset_index()


def budget_revenue_correlation(pairs: pd.DataFrame) -> float:
    """
    Pearson correlation between Budget and Revenue over complete pairs.

    Returns NaN when fewer than two complete pairs exist.
    """
    complete = pairs[['Budget', 'Revenue']].dropna()
    if len(complete) < 2:
        return float('nan')
    return float(complete['Budget'].corr(complete['Revenue']))


# ============================================================================
# CHARTS
# ============================================================================

def _dollars(scale: float, suffix: str) -> FuncFormatter:
    return FuncFormatter(lambda x, _: f"${x * scale:,.1f}{suffix}")


def _year_labels(years: pd.Series) -> list:
    return ['Unknown' if pd.isna(y) else str(y) for y in years]


def plot_movies_per_year(counts: pd.DataFrame) -> plt.Figure:
    """Number of movies by year."""
    fig, ax = plt.subplots(figsize=(14, 7))

    labels = _year_labels(counts['Year'])
    colors = plt.cm.viridis(np.linspace(0, 1, max(len(labels), 1)))
    bars = ax.bar(labels, counts['number_of_movies'], color=colors)

    for bar, count in zip(bars, counts['number_of_movies']):
        ax.text(bar.get_x() + bar.get_width()/2., bar.get_height(),
                f'{int(count)}', ha='center', va='bottom', fontsize=9)

    ax.set_xlabel('Year', fontsize=12)
    ax.set_ylabel('Movie Count', fontsize=12)
    ax.set_title('Number of Movies by Year', fontsize=14, fontweight='bold')
    ax.tick_params(axis='x', rotation=45)

    plt.tight_layout()
    return fig


def plot_revenue_per_year(revenue: pd.DataFrame) -> plt.Figure:
    """Total revenue by year, y axis in billions."""
    fig, ax = plt.subplots(figsize=(14, 7))

    labels = _year_labels(revenue['Year'])
    colors = plt.cm.viridis(np.linspace(0, 1, max(len(labels), 1)))
    ax.bar(labels, revenue['total_revenue'].fillna(0), color=colors)

    ax.yaxis.set_major_formatter(_dollars(1e-9, 'B'))
    ax.set_xlabel('Year', fontsize=12)
    ax.set_ylabel('Total Revenue', fontsize=12)
    ax.set_title('Revenues by Year', fontsize=14, fontweight='bold')
    ax.tick_params(axis='x', rotation=45)

    plt.tight_layout()
    return fig


def plot_revenue_by_genre(genres: pd.DataFrame) -> plt.Figure:
    """Top genres by total revenue, horizontal bars."""
    fig, ax = plt.subplots(figsize=(12, 6))

    ax.barh(range(len(genres)), genres['total_revenue'].fillna(0), color='blue', alpha=0.5)
    ax.set_yticks(range(len(genres)))
    ax.set_yticklabels(['Unknown' if pd.isna(g) or g == '' else g for g in genres['Genre']])
    ax.invert_yaxis()

    ax.xaxis.set_major_formatter(_dollars(1e-9, 'B'))
    ax.set_xlabel('Total Revenue', fontsize=12)
    ax.set_ylabel('Genre', fontsize=12)
    ax.set_title('Revenue by Genre', fontsize=14, fontweight='bold')

    plt.tight_layout()
    return fig


def plot_budget_vs_revenue(pairs: pd.DataFrame) -> plt.Figure:
    """Budget vs revenue scatter with a fitted line and the correlation."""
    fig, ax = plt.subplots(figsize=(12, 8))

    complete = pairs[['Budget', 'Revenue']].dropna()
    if len(complete) < 2:
        ax.text(0.5, 0.5, 'Not enough data',
                ha='center', va='center', fontsize=14)
        ax.axis('off')
        return fig

    sns.regplot(
        data=complete, x='Budget', y='Revenue', ax=ax,
        scatter_kws={'alpha': 0.5, 's': 15},
        line_kws={'color': '#FF6B6B'}
    )

    correlation = budget_revenue_correlation(complete)
    ax.annotate(f'r = {correlation:.3f}', xy=(0.98, 0.02), xycoords='axes fraction',
                ha='right', va='bottom', fontsize=12,
                bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.5))

    ax.xaxis.set_major_formatter(_dollars(1e-6, 'M'))
    ax.yaxis.set_major_formatter(_dollars(1e-6, 'M'))
    ax.set_xlabel('Budget', fontsize=12)
    ax.set_ylabel('Revenue', fontsize=12)
    ax.set_title('Budget vs Revenue', fontsize=14, fontweight='bold')

    plt.tight_layout()
    return fig


def plot_movies_per_range(ranges: pd.DataFrame) -> plt.Figure:
    """How many movies landed in each Movie_Range."""
    fig, ax = plt.subplots(figsize=(10, 6))

    colors = plt.cm.Set2(np.linspace(0, 1, len(ranges)))
    bars = ax.bar(ranges['Movie_Range'], ranges['number_of_movies'],
                  color=colors, edgecolor='black', linewidth=1)

    total = ranges['number_of_movies'].sum()
    for bar, count in zip(bars, ranges['number_of_movies']):
        percentage = count / total * 100 if total else 0
        ax.text(bar.get_x() + bar.get_width()/2., bar.get_height(),
                f'{int(count)} ({percentage:.1f}%)', ha='center', va='bottom', fontsize=10)

    ax.set_ylabel('Number of Movies', fontsize=12)
    ax.set_title('Movies by Revenue Range', fontsize=14, fontweight='bold')

    plt.tight_layout()
    return fig


# ============================================================================
# REPORT
# ============================================================================

def _html_report(stats: Dict[str, str], ranges: pd.DataFrame, figures: Dict[str, Path]) -> str:
    stat_cards = "\n".join(
        f"""
                <div class="stat-card">
                    <div class="stat-number">{value}</div>
                    <div class="stat-label">{label}</div>
                </div>"""
        for label, value in stats.items()
    )
    images = "\n".join(
        f"""
                <div class="visualization">
                    <img src="figures/{path.name}" alt="{name}">
                </div>"""
        for name, path in figures.items()
    )
    range_table = ranges.to_html(index=False, border=0, classes='ranges')

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Box Office SQL - Analysis Report</title>
    <style>
        body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; color: #333; background: #f8f9fa; padding: 20px; }}
        .container {{ max-width: 1200px; margin: 0 auto; background: white; border-radius: 20px; overflow: hidden; }}
        header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 40px; text-align: center; }}
        .stats-grid {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(220px, 1fr)); gap: 20px; padding: 30px; }}
        .stat-card {{ background: #f8f9fa; padding: 20px; border-radius: 15px; text-align: center; }}
        .stat-number {{ font-size: 2em; font-weight: bold; color: #667eea; }}
        .stat-label {{ color: #666; text-transform: uppercase; letter-spacing: 1px; }}
        .content {{ padding: 30px; }}
        .visualization {{ margin: 30px 0; text-align: center; }}
        .visualization img {{ max-width: 100%; }}
        table.ranges {{ margin: 0 auto; border-collapse: collapse; }}
        table.ranges td, table.ranges th {{ padding: 6px 16px; border-bottom: 1px solid #ddd; }}
    </style>
</head>
<body>
    <div class="container">
        <header>
            <h1>🎬 Box Office SQL</h1>
            <p>Generated on {datetime.now().strftime('%B %d, %Y at %I:%M %p')}</p>
        </header>
        <div class="stats-grid">{stat_cards}
        </div>
        <div class="content">
            <h2>Movie Ranges</h2>
            {range_table}
            {images}
        </div>
    </div>
</body>
</html>
"""


def generate_report(
    engine: Engine,
    table_name: str,
    output_dir: Path,
    top_n: int = 5
) -> Dict[str, Path]:
    """
    Run every query, save every chart and write analysis_report.html.

    Returns:
        Mapping of chart name -> PNG path, plus 'html' -> report path
    """
    output_dir = Path(output_dir)
    figures_dir = output_dir / 'figures'
    figures_dir.mkdir(parents=True, exist_ok=True)

    per_year = movies_per_year(engine, table_name)
    revenue_year = revenue_per_year(engine, table_name)
    genres = revenue_by_genre(engine, table_name, top_n)
    pairs = budget_vs_revenue(engine, table_name)
    ranges = movies_per_range(engine, table_name)
    correlation = budget_revenue_correlation(pairs)

    charts = {
        'movies_per_year': plot_movies_per_year(per_year),
        'revenue_per_year': plot_revenue_per_year(revenue_year),
        'revenue_by_genre': plot_revenue_by_genre(genres),
        'budget_vs_revenue': plot_budget_vs_revenue(pairs),
        'movies_per_range': plot_movies_per_range(ranges),
    }

    outputs: Dict[str, Path] = {}
    for name, fig in charts.items():
        path = figures_dir / f'{name}.png'
        fig.savefig(path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        outputs[name] = path
        logger.info("Saved chart %s", path)

    stats = {
        'Movies': f"{int(per_year['number_of_movies'].sum()):,}",
        'Total Revenue': f"${revenue_year['total_revenue'].sum() / 1e9:,.2f}B",
        'Budget/Revenue r': 'n/a' if np.isnan(correlation) else f'{correlation:.3f}',
        'Years Covered': f"{per_year['Year'].notna().sum():,}",
    }

    html_file = output_dir / 'analysis_report.html'
    with open(html_file, 'w', encoding='utf-8') as f:
        f.write(_html_report(stats, ranges, dict(outputs)))
    outputs['html'] = html_file
    logger.info("Saved report %s", html_file)

    return outputs


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    from config import config, setup_logging

    parser = argparse.ArgumentParser(
        description='Generate charts and an HTML report from the classified movies table',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--table',
        type=str,
        default=config.pipeline.table_name,
        help=f'Table to analyze (default: {config.pipeline.table_name})'
    )

    parser.add_argument(
        '--top-n',
        type=int,
        default=config.pipeline.top_n_genres,
        help=f'Genres shown in the revenue chart (default: {config.pipeline.top_n_genres})'
    )

    parser.add_argument(
        '--output-dir',
        type=Path,
        default=config.paths.reports_dir / 'analysis',
        help='Report directory (default: data/reports/analysis)'
    )

    parser.add_argument(
        '--open',
        action='store_true',
        help='Open report in browser after generation'
    )

    args = parser.parse_args(argv)
    setup_logging(config.logging)

    print("\n" + "="*70)
    print("🎬 BOX OFFICE SQL - Movie Analytics")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"💾 Database: {config.database.database_url}")
    print(f"📊 Table: {args.table}")

    engine = None
    try:
        engine = create_movie_engine(config.database.database_url, echo=config.database.echo)
        print("\n📊 Generating visualizations...")
        outputs = generate_report(engine, args.table, args.output_dir, args.top_n)
    except MoviePipelineError as e:
        print(f"\n❌ {e}")
        return 1
    finally:
        if engine is not None:
            engine.dispose()

    print("\n" + "="*70)
    print("✅ ANALYSIS COMPLETE!")
    print("="*70)
    print(f"\n📂 Output directory: {args.output_dir}")
    print(f"📄 HTML report: {outputs['html']}")
    print(f"🖼️  Figures: {len(outputs) - 1}")

    if args.open:
        import webbrowser
        webbrowser.open(f"file://{outputs['html'].absolute()}")
        print(f"\n🌐 Opened in browser")

    print(f"\n📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
