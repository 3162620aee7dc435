"""
Subject Categorization CLI

Config-driven normalization of course subject descriptions.
Assigns each subject a category from the fixed subject taxonomy via keyword
matching, with an optional LLM fallback for subjects no keyword matches.

Usage:
    python src/categorize_subjects.py --config config/default.yaml
    python src/categorize_subjects.py --config config/default.yaml --input override.csv
    python src/categorize_subjects.py --config config/default.yaml --output /tmp/out.csv --fallback
"""

import os
import sys
import time
import argparse
import yaml
import pandas as pd
from pathlib import Path
from collections import Counter

from subject_taxonomy import CATEGORIES, CATEGORY_KEYWORDS, categorize_by_keyword
from fallback_classifier import ClassificationUnavailable, OpenAIFallbackClassifier

OUTPUT_COLUMN = 'normalized_subject'
DEFAULT_EXCLUDED_STATUSES = ['Deprecated']

ALL_METHODS = ['keyword', 'fallback', 'fallback_failed', 'unmatched']
METHOD_LABELS = {
    'keyword': 'Keyword match',
    'fallback': 'LLM fallback',
    'fallback_failed': 'LLM fallback failed',
    'unmatched': 'Unmatched (logged)',
}


class ConfigError(Exception):
    pass


class InputReadError(Exception):
    pass


class OutputWriteError(Exception):
    pass


def load_config(config_path: str, input_override: str = None, output_override: str = None,
                fallback_override: bool = None) -> dict:
    config_path = Path(config_path).resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    base_dir = config_path.parent

    required_sections = ['paths', 'columns', 'fallback']
    for section in required_sections:
        if section not in config:
            raise ConfigError(f"Missing required config section: '{section}'")

    for key in ['input', 'output']:
        if key not in config['paths']:
            raise ConfigError(f"Missing required path: 'paths.{key}'")

    for key in ['subject', 'status']:
        if key not in config['columns']:
            raise ConfigError(f"Missing required column mapping: 'columns.{key}'")

    if 'enabled' not in config['fallback']:
        raise ConfigError("Missing required fallback param: 'fallback.enabled'")

    filters = config.setdefault('filters', {}) or {}
    config['filters'] = filters
    excluded = filters.setdefault('excluded_statuses', list(DEFAULT_EXCLUDED_STATUSES))
    if not isinstance(excluded, list):
        raise ConfigError("'filters.excluded_statuses' must be a list")

    resolved = {}
    for key in ['input', 'output']:
        resolved[key] = (base_dir / config['paths'][key]).resolve()
    report = config['paths'].get('unmatched_report')
    resolved['unmatched_report'] = (base_dir / report).resolve() if report else None

    if input_override:
        resolved['input'] = Path(input_override).resolve()
    if output_override:
        resolved['output'] = Path(output_override).resolve()
    if fallback_override is not None:
        config['fallback']['enabled'] = fallback_override

    config['_resolved_paths'] = resolved
    return config


def build_fallback(config: dict):
    fallback_cfg = config['fallback']
    if not fallback_cfg.get('enabled'):
        return None

    api_key_env = fallback_cfg.get('api_key_env', 'OPENAI_API_KEY')
    api_key = os.environ.get(api_key_env)
    if not api_key:
        raise ConfigError(f"Fallback enabled but environment variable '{api_key_env}' is not set")

    return OpenAIFallbackClassifier(
        model=fallback_cfg.get('model', 'gpt-4'),
        max_tokens=fallback_cfg.get('max_tokens', 10),
        api_key=api_key,
    )


def read_subjects(path: Path, subject_column: str, status_column: str) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except FileNotFoundError:
        raise InputReadError(f"Input file not found: {path}")
    except pd.errors.EmptyDataError:
        raise InputReadError(f"Input file is empty: {path}")
    except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
        raise InputReadError(f"Could not read input {path}: {e}")

    missing = [c for c in (subject_column, status_column) if c not in df.columns]
    if missing:
        raise InputReadError(f"Columns not found in input CSV: {', '.join(repr(c) for c in missing)}")
    return df


def drop_excluded_rows(df: pd.DataFrame, status_column: str, excluded_statuses) -> pd.DataFrame:
    keep = ~df[status_column].isin(excluded_statuses)
    return df[keep].reset_index(drop=True)


def classify_subjects(df: pd.DataFrame, subject_column: str, fallback=None,
                      keyword_table=CATEGORY_KEYWORDS) -> tuple[pd.DataFrame, pd.Series]:
    """Attach ``normalized_subject`` to every row.

    Keyword matching runs over the whole column first. Rows left without a
    category go to ``fallback`` one at a time when it is given; otherwise the
    subject is printed for manual review. A failed fallback leaves the row
    null and never stops the run.

    Returns the augmented frame and a per-row series naming how each row was
    resolved (one of ALL_METHODS).
    """
    df = df.drop(columns=[OUTPUT_COLUMN], errors='ignore').reset_index(drop=True)
    subjects = df[subject_column]

    categories = subjects.map(lambda s: categorize_by_keyword(s, keyword_table)).astype('object')
    method = pd.Series('keyword', index=df.index, dtype='object')

    for idx in categories[categories.isna()].index:
        subject = subjects[idx]
        if fallback is None:
            print(f"  Unmatched: {subject}")
            categories[idx] = None
            method[idx] = 'unmatched'
            continue
        try:
            categories[idx] = fallback.classify(subject)
            method[idx] = 'fallback'
        except ClassificationUnavailable as e:
            print(f"  WARNING: {e}")
            categories[idx] = None
            method[idx] = 'fallback_failed'

    df[OUTPUT_COLUMN] = categories
    return df, method


def write_subjects(df: pd.DataFrame, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False, lineterminator='\n')
    except OSError as e:
        raise OutputWriteError(f"Could not write output {path}: {e}")


def write_unmatched_report(df: pd.DataFrame, subject_column: str, path: Path) -> Counter:
    unresolved = Counter(df.loc[df[OUTPUT_COLUMN].isna(), subject_column].tolist())
    report_df = pd.DataFrame(
        [{'subject': subject, 'count': count} for subject, count in unresolved.most_common()],
        columns=['subject', 'count'],
    )
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        report_df.to_csv(path, index=False, lineterminator='\n')
    except OSError as e:
        raise OutputWriteError(f"Could not write unmatched report {path}: {e}")
    return unresolved


def main(config: dict, fallback=None) -> pd.DataFrame:
    paths = config['_resolved_paths']
    cols = config['columns']
    excluded_statuses = config['filters']['excluded_statuses']

    if fallback is None:
        fallback = build_fallback(config)

    t_start = time.perf_counter()

    print("=" * 70)
    print("SUBJECT CATEGORIZATION")
    print("=" * 70)

    print("\nLoading resources...")
    print(f"  Taxonomy categories: {len(CATEGORIES)}")
    print(f"  Keyword categories: {len(CATEGORY_KEYWORDS)}")
    print(f"  Keyword triggers: {sum(len(kw) for _, kw in CATEGORY_KEYWORDS)}")
    if fallback is not None:
        print(f"  LLM fallback: enabled ({getattr(fallback, 'model', type(fallback).__name__)})")
    else:
        print("  LLM fallback: disabled (unmatched subjects are logged)")

    print(f"\nLoading subjects from {paths['input']}...")
    df = read_subjects(paths['input'], cols['subject'], cols['status'])
    total_rows = len(df)
    print(f"  Loaded {total_rows:,} rows, {len(df.columns)} columns")

    df = drop_excluded_rows(df, cols['status'], excluded_statuses)
    kept_rows = len(df)
    print(f"  Excluded {total_rows - kept_rows:,} rows with status in {excluded_statuses}")

    if kept_rows == 0:
        print("  WARNING: No rows left to classify, output will contain the header only")

    print("\nClassifying subjects...")
    t_classify = time.perf_counter()
    results_df, method = classify_subjects(df, cols['subject'], fallback=fallback)
    t_classify_end = time.perf_counter()
    print(f"  Classification completed in {t_classify_end - t_classify:.1f}s")

    write_subjects(results_df, paths['output'])

    unresolved = None
    if paths.get('unmatched_report'):
        unresolved = write_unmatched_report(results_df, cols['subject'], paths['unmatched_report'])

    method_counts = method.value_counts().to_dict()
    category_counts = results_df[OUTPUT_COLUMN].value_counts().to_dict()

    t_end = time.perf_counter()

    print(f"\n{'='*70}")
    print("CLASSIFICATION COMPLETE")
    print(f"{'='*70}")
    print(f"Total subjects:       {kept_rows:,}")
    if kept_rows:
        print("\nClassification Methods:")
        for m in ALL_METHODS:
            count = method_counts.get(m, 0)
            if count > 0:
                print(f"  {METHOD_LABELS[m]:30s} {count:>8,} ({count/kept_rows*100:.1f}%)")
        print("\nCategories:")
        for category in CATEGORIES:
            count = category_counts.get(category, 0)
            if count > 0:
                print(f"  {category:30s} {count:>8,} ({count/kept_rows*100:.1f}%)")
    if unresolved:
        print(f"\nUnresolved subjects: {len(unresolved)} unique, {sum(unresolved.values()):,} total rows")
        print(f"Unmatched report saved to: {paths['unmatched_report']}")
    print(f"\nTiming: classification {t_classify_end - t_classify:.1f}s, total {t_end - t_start:.1f}s")
    print(f"Output saved to: {paths['output']}")

    return results_df


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description='Subject Categorization CLI — normalize course subjects against the subject taxonomy'
    )
    parser.add_argument('--config', required=True, help='Path to config YAML')
    parser.add_argument('--input', default=None, help='Override input CSV path from config')
    parser.add_argument('--output', default=None, help='Override output CSV path from config')
    parser.add_argument('--fallback', default=None, action=argparse.BooleanOptionalAction,
                        help='Enable or disable the LLM fallback for unmatched subjects')
    args = parser.parse_args()

    sys.stdout.reconfigure(encoding='utf-8')

    try:
        config = load_config(args.config, args.input, args.output, args.fallback)
        main(config)
    except (ConfigError, InputReadError, OutputWriteError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)
