from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from claimaudit.errors import ComparisonError
from claimaudit.models import SchemaTag
from claimaudit.pipeline import ComparisonPipeline, DocumentError
from claimaudit.utils.io import read_text, write_text
from claimaudit.utils.time import run_id


def _variant(value: str) -> SchemaTag:
    try:
        return SchemaTag.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claim-audit",
        description="Compare two insurance documents and render an audit report",
    )
    parser.add_argument("--mode", choices=["mock", "live"], required=True)
    parser.add_argument(
        "--variant",
        type=_variant,
        required=True,
        help="SupplementDiff, NegotiationAudit or ValuationAudit",
    )
    parser.add_argument("--first", help="Original estimate, demand package or CCC valuation")
    parser.add_argument("--second", help="Supplement record, counter offer or CarFax report")
    parser.add_argument("--from-raw", help="Run the core on a saved generator response instead")
    parser.add_argument("--out", help="Directory that receives the run folder (default: ./runs)")
    parser.add_argument("--log-level", help="Overrides CLAIMAUDIT_LOG_LEVEL")
    parser.add_argument("--max-output-tokens", type=int)
    parser.add_argument("--temperature", type=float)
    return parser


def _ensure_env() -> None:
    if not os.getenv("GEMINI_API_KEY"):
        raise RuntimeError(
            "Missing required API key: GEMINI_API_KEY. Create a .env file and set the key."
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    base_dir = Path.cwd()
    load_dotenv(base_dir / ".env")
    configure_logging(args.log_level or os.getenv("CLAIMAUDIT_LOG_LEVEL", "WARNING"))

    if not args.from_raw and not (args.first and args.second):
        parser.error("--first and --second are required unless --from-raw is given")

    if args.max_output_tokens is not None:
        os.environ["CLAIMAUDIT_MAX_OUTPUT_TOKENS"] = str(args.max_output_tokens)
    if args.temperature is not None:
        os.environ["CLAIMAUDIT_TEMPERATURE"] = str(args.temperature)

    if args.mode == "live" and not args.from_raw:
        _ensure_env()

    tag: SchemaTag = args.variant
    out_dir = Path(args.out) if args.out else base_dir / "runs"
    run_dir = out_dir / run_id(tag.slug)
    for path in [run_dir / "raw", run_dir / "artifacts"]:
        path.mkdir(parents=True, exist_ok=True)

    pipeline = ComparisonPipeline(args.mode, base_dir)
    try:
        if args.from_raw:
            raw_text = read_text(Path(args.from_raw))
            write_text(run_dir / "raw" / "response.txt", raw_text)
            outcome = pipeline.process(tag, raw_text, run_dir)
        else:
            outcome = pipeline.run(tag, Path(args.first), Path(args.second), run_dir)
    except DocumentError as exc:
        parser.error(str(exc))
    except ComparisonError as exc:
        print(f"[claim-audit] {type(exc).__name__}: {exc}", file=sys.stderr)
        print(f"[claim-audit] raw response kept under {run_dir / 'raw'}", file=sys.stderr)
        return 2

    print(f"[claim-audit] report: {outcome.pdf_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
