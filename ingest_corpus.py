"""
Corpus ingestion CLI.
Loads a TSV of reference short-form scripts into the corpus table. Optional passes embed
entries that have no embedding and tag entries missing parasocial levers.
"""
import argparse
import csv
import re
import sys
import time
from pathlib import Path

import llm_utils
import prompt_builders
from config import DEBUG
from db_models import CorpusEntry
from extensions import db
from schemas import CORPUS_LEVERS_SCHEMA, unwrap_list
from voice_taxonomy import PARASOCIAL_LEVERS

BATCH_SIZE = 100
MIN_CONTENT_CHARS = 20
DEFAULT_QUALITY = 0.7

LEVER_BATCH_SIZE = 10
LEVER_ATTEMPTS = 2
LEVER_CONTENT_CHARS = 500
MAX_LEVERS_PER_ENTRY = 4

SKIP_PATTERNS = [
    re.compile(r"^thanks for watching", re.IGNORECASE),
    re.compile(r"^subscribe", re.IGNORECASE),
    re.compile(r"^like and subscribe", re.IGNORECASE),
    re.compile(r"^follow me", re.IGNORECASE),
]


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [CORPUS] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[CORPUS] {msg}")


def should_skip(content: str | None) -> str | None:
    """Reason to skip a row, or None to keep it."""
    text = (content or "").strip()
    if not text:
        return "Empty content"
    if len(text) < MIN_CONTENT_CHARS:
        return f"Too short ({len(text)} chars)"
    for pattern in SKIP_PATTERNS:
        if pattern.search(text):
            return f"Matches skip pattern: {pattern.pattern}"
    return None


def _to_int(value: str | None) -> int | None:
    try:
        return int(value) if value and value.strip() else None
    except ValueError:
        return None


def _to_float(value: str | None, default: float) -> float:
    try:
        return float(value) if value and value.strip() else default
    except ValueError:
        return default


def parse_row(row: dict) -> dict | None:
    """CorpusEntry column values for a TSV row, or None when the row is skipped."""
    if should_skip(row.get("text")):
        return None
    levers = [lever.strip() for lever in (row.get("parasocial_levers") or "").split("|") if lever.strip()]
    return {
        "content": row["text"].strip(),
        "creator": (row.get("creator") or "").strip() or None,
        "duration_seconds": _to_int(row.get("duration_seconds")),
        "hook": (row.get("hook") or "").strip() or None,
        "hook_type": (row.get("hook_type") or "").strip() or None,
        "script_archetype": (row.get("script_archetype") or "").strip() or None,
        "parasocial_levers": levers or None,
        "quality_score": _to_float(row.get("quality_score"), DEFAULT_QUALITY),
        "is_active": True,
    }


def read_tsv(path: Path) -> list[dict]:
    with open(path, newline="", encoding="utf-8") as f:
        return [row for row in csv.DictReader(f, delimiter="\t") if any((v or "").strip() for v in row.values())]


def ingest_rows(rows: list[dict], dry_run: bool = False) -> dict:
    """
    Insert parsed rows in batches of BATCH_SIZE.

    Returns:
        {"total", "inserted", "skipped", "errors", "skipped_rows": [(line, reason)]}
    """
    to_insert = []
    skipped = []
    for i, row in enumerate(rows):
        reason = should_skip(row.get("text"))
        if reason:
            skipped.append((i + 2, reason))  # header line plus 1-based numbering
            continue
        to_insert.append(parse_row(row))

    inserted = 0
    errors = 0
    if not dry_run:
        for start in range(0, len(to_insert), BATCH_SIZE):
            batch = to_insert[start:start + BATCH_SIZE]
            try:
                db.session.add_all(CorpusEntry(**values) for values in batch)
                db.session.commit()
                inserted += len(batch)
                _log(f"Inserted: {inserted}/{len(to_insert)}", verbose_only=True)
            except Exception as e:
                db.session.rollback()
                errors += len(batch)
                print(f"[WARNING] Batch {start // BATCH_SIZE + 1} failed: {e}")

    return {
        "total": len(rows),
        "valid": len(to_insert),
        "inserted": inserted,
        "skipped": len(skipped),
        "errors": errors,
        "skipped_rows": skipped,
    }


def embed_missing(batch_size: int = BATCH_SIZE, dry_run: bool = False) -> int:
    """Embed active corpus entries that have no embedding. Returns how many were (or would be) embedded."""
    entries = list(db.session.scalars(
        db.select(CorpusEntry).where(CorpusEntry.is_active.is_(True), CorpusEntry.embedding.is_(None))
    ))
    if dry_run or not entries:
        return len(entries)

    done = 0
    for start in range(0, len(entries), batch_size):
        batch = entries[start:start + batch_size]
        vectors = llm_utils.generate_embeddings([e.content for e in batch])
        for entry, vector in zip(batch, vectors):
            entry.embedding = vector
        db.session.commit()
        done += len(batch)
        _log(f"Embedded: {done}/{len(entries)}", verbose_only=True)
    return done


def _tag_batch(batch: list[CorpusEntry]) -> tuple[dict[int, list], int]:
    """Ask the LLM for levers on one batch. Returns ({batch position: raw levers}, tokens)."""
    items = [
        {
            "index": i,
            "hook": entry.hook or "N/A",
            "hook_type": entry.hook_type or "N/A",
            "script_archetype": entry.script_archetype or "N/A",
            "content": entry.content[:LEVER_CONTENT_CHARS],
        }
        for i, entry in enumerate(batch)
    ]
    text, tokens = llm_utils.generate_text_with_usage(
        [{"role": "user", "content": prompt_builders.build_corpus_levers_prompt(items)}],
        provider=llm_utils.get_provider_for_step("corpus"),
        temperature=0.2,
        response_json_schema=CORPUS_LEVERS_SCHEMA,
    )
    tagged = {}
    for raw in unwrap_list(llm_utils.parse_json_response(text), "entries"):
        if not isinstance(raw, dict):
            continue
        idx = raw.get("index")
        if isinstance(idx, int) and 0 <= idx < len(batch) and idx not in tagged:
            levers = raw.get("parasocial_levers")
            tagged[idx] = levers if isinstance(levers, list) else []
    return tagged, tokens


def enrich_levers(batch_size: int = LEVER_BATCH_SIZE, dry_run: bool = False) -> dict:
    """
    Tag active corpus entries that have no parasocial_levers.

    Levers outside PARASOCIAL_LEVERS are dropped; an entry left with none is skipped.
    A batch that fails twice counts every entry in it as an error.

    Returns:
        {"total", "updated", "skipped", "errors", "tokens_used"}
    """
    entries = [
        e for e in db.session.scalars(db.select(CorpusEntry).where(CorpusEntry.is_active.is_(True)))
        if not e.parasocial_levers
    ]
    stats = {"total": len(entries), "updated": 0, "skipped": 0, "errors": 0, "tokens_used": 0}
    if dry_run or not entries:
        return stats

    total_batches = (len(entries) + batch_size - 1) // batch_size
    for start in range(0, len(entries), batch_size):
        batch = entries[start:start + batch_size]
        batch_num = start // batch_size + 1
        tagged = None
        for attempt in range(1, LEVER_ATTEMPTS + 1):
            try:
                tagged, tokens = _tag_batch(batch)
                stats["tokens_used"] += tokens
                break
            except Exception as e:
                print(f"[WARNING] Lever batch {batch_num} attempt {attempt}/{LEVER_ATTEMPTS} failed: {e}")
                if attempt < LEVER_ATTEMPTS:
                    time.sleep(1.0 * attempt)
        if tagged is None:
            stats["errors"] += len(batch)
            continue

        for i, entry in enumerate(batch):
            raw = tagged.get(i, [])
            valid = list(dict.fromkeys(lever for lever in raw if lever in PARASOCIAL_LEVERS))[:MAX_LEVERS_PER_ENTRY]
            invalid = [lever for lever in raw if lever not in PARASOCIAL_LEVERS]
            if invalid:
                _log(f"Dropped unknown levers for {entry.id}: {', '.join(map(str, invalid))}", verbose_only=True)
            if not valid:
                stats["skipped"] += 1
                continue
            entry.parasocial_levers = valid
            stats["updated"] += 1
        db.session.commit()
        _log(f"Lever batch {batch_num}/{total_batches} done ({stats['updated']} updated)", verbose_only=True)
    return stats


def print_summary(stats: dict, dry_run: bool) -> None:
    if stats["skipped_rows"] and len(stats["skipped_rows"]) <= 20:
        print("Skipped rows:")
        for line, reason in stats["skipped_rows"]:
            print(f"  Row {line}: {reason}")
        print()
    print("=" * 40)
    print("Corpus Ingestion Summary" + (" (dry run)" if dry_run else ""))
    print("=" * 40)
    print(f"Total TSV rows:  {stats['total']}")
    print(f"Valid rows:      {stats['valid']}")
    print(f"Inserted:        {stats['inserted']}")
    print(f"Skipped:         {stats['skipped']}")
    print(f"Errors:          {stats['errors']}")
    print("=" * 40)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Load reference scripts into the corpus table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Expected TSV columns:
  text, hook, duration_seconds, creator, hook_type, script_archetype,
  parasocial_levers (| separated), quality_score

Examples:
  # Ingest and report
  python ingest_corpus.py docs/corpus_cleaned.tsv

  # See what would be inserted without writing
  python ingest_corpus.py docs/corpus_cleaned.tsv --dry-run

  # Ingest, then embed every entry that has no embedding
  python ingest_corpus.py docs/corpus_cleaned.tsv --embed

  # Only embed (no TSV)
  python ingest_corpus.py --embed

  # Tag entries that have no parasocial levers
  python ingest_corpus.py --enrich-levers
        """
    )
    parser.add_argument("tsv", nargs="?", help="Corpus TSV file")
    parser.add_argument("--embed", action="store_true",
                        help="Generate embeddings for corpus entries that have none")
    parser.add_argument("--enrich-levers", action="store_true",
                        help="Tag corpus entries that have no parasocial levers")
    parser.add_argument("--dry-run", action="store_true",
                        help="Report counts without writing to the database")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if not (args.tsv or args.embed or args.enrich_levers):
        print("ERROR: Give a TSV file, --embed or --enrich-levers")
        return 1

    from app import create_app

    app = create_app({"SQLALCHEMY_DATABASE_URI": args.database_url} if args.database_url else None)
    with app.app_context():
        if args.tsv:
            path = Path(args.tsv)
            if not path.exists():
                print(f"ERROR: File not found: {path}")
                return 1
            rows = read_tsv(path)
            _log(f"Parsed {len(rows)} rows from {path}")
            stats = ingest_rows(rows, dry_run=args.dry_run)
            print_summary(stats, args.dry_run)
            if stats["errors"]:
                return 1

        if args.embed:
            n = embed_missing(dry_run=args.dry_run)
            verb = "Would embed" if args.dry_run else "Embedded"
            _log(f"{verb} {n} corpus entries")

        if args.enrich_levers:
            lever_stats = enrich_levers(dry_run=args.dry_run)
            if args.dry_run:
                _log(f"Would tag {lever_stats['total']} corpus entries")
            else:
                _log(f"Tagged {lever_stats['updated']}/{lever_stats['total']} corpus entries "
                     f"({lever_stats['skipped']} skipped, {lever_stats['errors']} errors)")
            if lever_stats["errors"]:
                return 1

        total = db.session.scalar(db.select(db.func.count()).select_from(CorpusEntry))
        print(f"\nTotal corpus entries in database: {total}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
