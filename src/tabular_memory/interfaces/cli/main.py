import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

import colorlog

from tabular_memory import __version__ as _PACKAGE_VERSION
from tabular_memory.config import Settings, load_config
from tabular_memory.core.diagnostics import CollectingSink, FanOutSink, LoggingSink
from tabular_memory.core.enums import FuzzyOperator
from tabular_memory.decoding.sentence_parser import decode_document, decode_record
from tabular_memory.ingestion.pipeline import ingest_files
from tabular_memory.query.frame import FrameQueryRunner
from tabular_memory.query.predicate import build_predicate
from tabular_memory.registry.schema_registry import SchemaRegistry, describe_schema
from tabular_memory.registry.stores import InMemorySchemaStore, JsonDirectorySchemaStore


def setup_logging(
    verbose: bool = False, warnings_only: bool = False, errors_only: bool = False
) -> None:
    logger = logging.getLogger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
    log_format = "%(asctime)s:%(levelname)s:%(name)s:%(lineno)d: %(message)s"
    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    stream_handler = colorlog.StreamHandler(sys.stderr)
    formatter = colorlog.ColoredFormatter(f"%(log_color)s{log_format}", log_colors=log_colors)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    if errors_only:
        logger.setLevel(logging.ERROR)
    elif warnings_only:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)


class JsonlDocumentSink:
    """Writes each persisted document as one JSON line."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self.count = 0

    def persist(self, document: Dict[str, Any]) -> None:
        self.stream.write(json.dumps(document, ensure_ascii=False) + "\n")
        self.count += 1


def _load_settings(args: argparse.Namespace) -> Optional[Settings]:
    config_path = getattr(args, "config", None)
    try:
        settings = load_config(Path(config_path) if config_path else None)
    except (FileNotFoundError, TypeError, ValueError) as e:
        logging.error("Invalid configuration: %s", e)
        return None
    fuzzy = settings.fuzzy_match
    if getattr(args, "fuzzy", None) is not None:
        fuzzy = replace(fuzzy, enabled=bool(args.fuzzy))
    if getattr(args, "operator", None):
        fuzzy = replace(fuzzy, operator=FuzzyOperator(args.operator))
    if getattr(args, "min_length", None) is not None:
        fuzzy = replace(fuzzy, minimum_length=int(args.min_length))
    if getattr(args, "case_sensitive", False):
        fuzzy = replace(fuzzy, case_insensitive=False)
    ingestion = settings.ingestion
    if getattr(args, "structured", False):
        ingestion = replace(ingestion, include_structured_data=True)
    if getattr(args, "sheet", None):
        ingestion = replace(ingestion, sheet_names=tuple(args.sheet))
    return settings.with_overrides(fuzzy_match=fuzzy, ingestion=ingestion)


def _registry(args: argparse.Namespace, settings: Settings, sink=None) -> SchemaRegistry:
    schema_dir = getattr(args, "schema_dir", None) or settings.schema.store_dir
    store = JsonDirectorySchemaStore(Path(schema_dir)) if schema_dir else InMemorySchemaStore()
    return SchemaRegistry(store, diagnostics=sink, default_index=settings.schema.index_name)


def _read_jsonl(path: Path) -> List[Dict[str, Any]]:
    documents: List[Dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                doc = json.loads(line)
            except ValueError as e:
                logging.warning("Skipping invalid JSON at %s:%d: %s", path, lineno, e)
                continue
            if isinstance(doc, dict):
                documents.append(doc)
    return documents


def _parse_spec(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if not raw:
        return {}
    candidate = Path(raw)
    text = candidate.read_text(encoding="utf-8") if candidate.suffix == ".json" and candidate.exists() else raw
    try:
        spec = json.loads(text)
    except ValueError as e:
        logging.error("Filter spec is not valid JSON: %s", e)
        return None
    if not isinstance(spec, dict):
        logging.error("Filter spec must be a JSON object")
        return None
    return spec


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def cmd_ingest(args: argparse.Namespace) -> int:
    """Read source files, register their schemas and emit encoded rows as JSONL.

    Returns 0 when at least one row was encoded, 1 when nothing was, 2 on
    bad arguments or configuration.
    """
    settings = _load_settings(args)
    if settings is None:
        return 2
    paths = [Path(p) for p in args.inputs]
    diagnostics = CollectingSink()
    registry = _registry(args, settings, FanOutSink(diagnostics, LoggingSink()))

    out_stream: TextIO
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_stream = out_path.open("w", encoding="utf-8")
    else:
        out_stream = sys.stdout
    sink = JsonlDocumentSink(out_stream)
    try:
        batch = ingest_files(
            paths,
            registry,
            settings,
            dataset_name=args.dataset or "",
            target_index=args.index,
            diagnostics=diagnostics,
            sink=sink,
            show_progress=bool(args.progress),
        )
    finally:
        if out_stream is not sys.stdout:
            out_stream.close()

    for result in batch.results:
        for table in result.tables:
            logging.info(
                "%s/%s -> dataset %s, %d rows, schema %s",
                result.source_file,
                table.table,
                table.dataset_name,
                len(table.chunks),
                table.schema.id if table.schema else "-",
            )
    for path, reason in batch.failures.items():
        logging.warning("Failed: %s (%s)", path, reason)
    if diagnostics.counts():
        logging.info("Diagnostics: %s", diagnostics.counts())
    return 0 if sink.count > 0 else 1


def cmd_schemas(args: argparse.Namespace) -> int:
    """List stored schemas, or describe the latest one for a dataset."""
    settings = _load_settings(args)
    if settings is None:
        return 2
    if not (args.schema_dir or settings.schema.store_dir):
        logging.error("--schema-dir is required (or schema.store_dir in the config)")
        return 2
    registry = _registry(args, settings)
    if args.dataset:
        schema = registry.get_schema(args.dataset, index=args.index)
        if schema is None:
            logging.error("No schema found for dataset '%s'", args.dataset)
            return 1
        if args.json:
            _print_json(schema.to_dict())
        else:
            print(describe_schema(schema))
        return 0
    schemas = registry.list_schemas(index=args.index)
    if not schemas:
        logging.warning("No schemas found")
        return 1
    if args.json:
        _print_json([s.to_dict() for s in schemas])
    else:
        for s in schemas:
            print(f"{s.import_date.isoformat()}  {s.dataset_name:<30} {s.id}  ({len(s.columns)} columns)")
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    """Decode record texts (arguments) or stored documents (--input JSONL)."""
    diagnostics = CollectingSink()
    decoded = []
    if args.input:
        path = Path(args.input)
        if not path.exists():
            logging.error("Input not found: %s", path)
            return 2
        for doc in _read_jsonl(path):
            decoded.append(decode_document(doc, diagnostics=diagnostics))
    for text in args.texts or []:
        decoded.append(decode_record(text, diagnostics=diagnostics))
    if not decoded:
        logging.error("Nothing to decode: pass record texts or --input")
        return 2
    _print_json(
        [
            {
                "data": row.plain_data(),
                "source": row.source,
                "channel": row.channel,
                "warnings": row.warnings,
            }
            for row in decoded
        ]
    )
    return 0


def _build(args: argparse.Namespace, settings: Settings):
    spec = _parse_spec(args.spec)
    if spec is None:
        return None
    schema = None
    if args.dataset:
        if not (args.schema_dir or settings.schema.store_dir):
            logging.error("--schema-dir is required with --dataset")
            return None
        schema = _registry(args, settings).get_schema(args.dataset, index=args.index)
        if schema is None:
            logging.warning("No schema found for dataset '%s'; filter not validated", args.dataset)
    return build_predicate(spec, settings.fuzzy_match, schema, diagnostics=LoggingSink())


def cmd_filter(args: argparse.Namespace) -> int:
    """Build a predicate from a filter spec and print it."""
    settings = _load_settings(args)
    if settings is None:
        return 2
    build = _build(args, settings)
    if build is None:
        return 2
    if args.json:
        _print_json({"predicate": build.predicate.to_dict(), "warnings": build.warnings})
    else:
        print(build.predicate.describe())
        for warning in build.warnings:
            print(f"warning: {warning}")
    return 0


def cmd_query(args: argparse.Namespace) -> int:
    """Filter stored documents (JSONL) with a filter spec."""
    settings = _load_settings(args)
    if settings is None:
        return 2
    docs_path = Path(args.documents)
    if not docs_path.exists():
        logging.error("Documents file not found: %s", docs_path)
        return 2
    build = _build(args, settings)
    if build is None:
        return 2
    for warning in build.warnings:
        logging.warning(warning)
    runner = FrameQueryRunner(_read_jsonl(docs_path))
    matches = runner.run_query(build.predicate, limit=args.limit)
    logging.info("Predicate %s matched %d documents", build.predicate, len(matches))
    if args.decoded:
        rows = [decode_document(d) for d in matches]
        _print_json([{"data": row.plain_data(), "source": row.source} for row in rows])
    else:
        for doc in matches:
            print(json.dumps(doc, ensure_ascii=False))
    return 0 if matches else 1


def _add_config_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default=None, help="Path to a YAML settings file")
    p.add_argument(
        "--schema-dir",
        default=None,
        help="Directory of stored schema records (<dir>/<index>/<id>.schema.json)",
    )
    p.add_argument("--index", default=None, help="Schema index name (defaults to the configured index)")


def _add_fuzzy_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--spec", required=True, help="Filter spec as JSON text or a path to a .json file")
    p.add_argument("--dataset", default=None, help="Validate data.* keys against this dataset's schema")
    p.add_argument("--fuzzy", dest="fuzzy", action="store_true", default=None, help="Enable fuzzy matching")
    p.add_argument("--no-fuzzy", dest="fuzzy", action="store_false", help="Disable fuzzy matching")
    p.add_argument(
        "--operator",
        type=str.upper,
        choices=[o.value for o in FuzzyOperator],
        help="Fuzzy operator (case insensitive)",
    )
    p.add_argument("--min-length", type=int, default=None, help="Minimum value length for fuzzy matching")
    p.add_argument("--case-sensitive", action="store_true", help="Compare data fields case-sensitively")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tabular-memory",
        description=f"Tabular Memory Tools (v{_PACKAGE_VERSION})",
    )
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    p.add_argument(
        "--warnings-only",
        action="store_true",
        help="Show only warnings and errors (overrides --verbose)",
    )
    p.add_argument(
        "--errors-only",
        action="store_true",
        help="Show only errors (overrides --warnings-only and --verbose)",
    )

    sub = p.add_subparsers(dest="command", required=True)

    p_ingest = sub.add_parser("ingest", help="Encode CSV/Excel rows and register their schemas")
    p_ingest.add_argument("inputs", nargs="+", help="Source files (.csv, .tsv, .xlsx, .xlsm)")
    p_ingest.add_argument("--dataset", default=None, help="Dataset name (defaults to the file stem)")
    p_ingest.add_argument("--output", default=None, help="Write encoded chunks as JSONL here (default stdout)")
    p_ingest.add_argument(
        "--structured",
        action="store_true",
        help="Attach the raw row as JSON under tabular_data",
    )
    p_ingest.add_argument(
        "--sheet",
        action="append",
        default=None,
        help="Worksheet to read (repeatable; default every sheet)",
    )
    p_ingest.add_argument("--progress", action="store_true", help="Show progress bars")
    _add_config_args(p_ingest)
    p_ingest.set_defaults(func=cmd_ingest)

    p_schemas = sub.add_parser("schemas", help="List stored schemas or describe one dataset")
    p_schemas.add_argument("--dataset", default=None, help="Describe the latest schema of this dataset")
    p_schemas.add_argument("--json", action="store_true", help="Print schema records as JSON")
    _add_config_args(p_schemas)
    p_schemas.set_defaults(func=cmd_schemas)

    p_decode = sub.add_parser("decode", help="Decode record texts or stored documents")
    p_decode.add_argument("texts", nargs="*", help="Record texts")
    p_decode.add_argument("--input", default=None, help="JSONL file of stored documents")
    p_decode.set_defaults(func=cmd_decode)

    p_filter = sub.add_parser("filter", help="Build a filter predicate from a filter spec")
    _add_fuzzy_args(p_filter)
    p_filter.add_argument("--json", action="store_true", help="Print the predicate tree as JSON")
    _add_config_args(p_filter)
    p_filter.set_defaults(func=cmd_filter)

    p_query = sub.add_parser("query", help="Filter stored documents with a filter spec")
    p_query.add_argument("--documents", required=True, help="JSONL file of stored documents")
    _add_fuzzy_args(p_query)
    p_query.add_argument("--limit", type=int, default=None, help="Maximum number of documents")
    p_query.add_argument("--decoded", action="store_true", help="Print decoded rows instead of documents")
    _add_config_args(p_query)
    p_query.set_defaults(func=cmd_query)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        verbose=bool(args.verbose),
        warnings_only=bool(getattr(args, "warnings_only", False)),
        errors_only=bool(getattr(args, "errors_only", False)),
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
