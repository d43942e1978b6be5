"""CLI entry-point for the researcher tooling.

Usage:
    python -m studylab.main score transcript.txt [--ai-only] [--per-turn]
    python -m studylab.main score transcripts.csv --csv [--save]
    python -m studylab.main status
    python -m studylab.main run metrics [--recompute]
    python -m studylab.main bump --yes
    python -m studylab.main compare
    # or via pyproject entry-point:  studylab
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from studylab.backend.client import get_backend
from studylab.errors import FormalityError, RulesVersionBumpNotConfirmed
from studylab.evaluation.compare import compare_conditions, load_condition_scores
from studylab.formality.batch import load_transcripts_csv, results_to_rows, score_batch
from studylab.formality.breakdown import explain_calculation, insights
from studylab.formality.scorer import score_transcript
from studylab.formality.store import FormalityStore
from studylab.formality.tagger import tagger_info
from studylab.logging_config import setup_logging
from studylab.pipeline.runner import PipelineRunner, format_cost, format_time
from studylab.pipeline.status import PipelineStatus, Stage

logger = logging.getLogger(__name__)

LIGHTS = {"green": "●", "yellow": "◐", "red": "✖", "loading": "…"}


def _print_status(status: PipelineStatus) -> None:
    if status.error:
        print(f"Status unavailable: {status.error}")
        return
    print(f"Rules version: v{status.rules_version}")
    for stage in Stage:
        s = status.stage(stage)
        print(
            f"  {LIGHTS[s.light.value]} {stage.value:<14} total={s.total:<4} "
            f"fresh={s.fresh:<4} missing={s.missing:<4} stale={s.stale}"
        )


async def _score(args: argparse.Namespace) -> int:
    path = Path(args.file)
    store = FormalityStore(get_backend()) if args.save else None

    if args.csv:
        rows = load_transcripts_csv(path)
        result = score_batch(
            rows, ai_only_mode=args.ai_only, per_turn_mode=args.per_turn, batch_name=path.stem
        )
        for row in results_to_rows(result.calculations):
            print(json.dumps(row))
        for index, message in result.errors:
            print(f"row {index}: {message}", file=sys.stderr)
        if store:
            for calc in result.calculations:
                await store.save(calc)
        return 0 if result.calculations else 1

    calc = score_transcript(
        path.read_text(encoding="utf-8"),
        ai_only_mode=args.ai_only,
        per_turn_mode=args.per_turn,
    )
    print(explain_calculation(calc))
    for insight in insights(calc.category_data):
        print(f"  [{insight.kind}] {insight.message}")
    if store:
        saved = await store.save(calc)
        print(f"Saved as {saved.id}")
    return 0


async def _status(args: argparse.Namespace) -> int:
    runner = PipelineRunner(get_backend())
    status = await runner.monitor.fetch_status()
    _print_status(status or runner.monitor.status)
    return 0


async def _run(args: argparse.Namespace) -> int:
    runner = PipelineRunner(get_backend())
    if args.stage == "all":
        result = await runner.run_all()
        print(
            f"Estimated {result.estimate.calls} calls, "
            f"{format_cost(result.estimate.cost)}, {format_time(result.estimate.seconds)}"
        )
        for r in result.results:
            print(f"  {r.stage.value}: {r.processed} processed" + (f" ({r.error})" if r.error else ""))
        if result.status:
            _print_status(result.status)
        return 0 if all(r.ok for r in result.results) else 1

    result = await runner.run_stage(
        Stage(args.stage),
        recompute=args.recompute,
        on_progress=lambda n: print(f"  … {n} processed", file=sys.stderr),
    )
    print(f"{result.stage.value}: {result.processed} processed in {result.batches} batches")
    if result.error:
        print(f"Stopped: {result.error}", file=sys.stderr)
        return 1
    return 0


async def _bump(args: argparse.Namespace) -> int:
    runner = PipelineRunner(get_backend())
    try:
        version = await runner.bump_rules_version(confirm=args.yes)
    except RulesVersionBumpNotConfirmed as e:
        print(e)
        print("Re-run with --yes to confirm.")
        return 2
    print(f"Rules version bumped to v{version}. Re-run thematic coding to update stale calls.")
    return 0


async def _compare(args: argparse.Namespace) -> int:
    scores = await load_condition_scores(get_backend(), ai_only=not args.full_transcript)
    print(json.dumps(compare_conditions(scores), indent=2))
    return 0


async def _tagger(args: argparse.Namespace) -> int:
    print(json.dumps(tagger_info(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="studylab", description="Voice study researcher tools")
    sub = parser.add_subparsers(dest="command", required=True)

    score = sub.add_parser("score", help="Score a transcript file (or CSV with --csv)")
    score.add_argument("file")
    score.add_argument("--ai-only", action="store_true", help="Score only AI utterances")
    score.add_argument("--per-turn", action="store_true", help="Also score each AI turn")
    score.add_argument("--csv", action="store_true", help="Input is a CSV with a Transcript column")
    score.add_argument("--save", action="store_true", help="Persist results to the backend")
    score.set_defaults(handler=_score)

    status = sub.add_parser("status", help="Show compute pipeline status")
    status.set_defaults(handler=_status)

    run = sub.add_parser("run", help="Drain a pipeline stage")
    run.add_argument("stage", choices=["transcription", "metrics", "pass_a", "pass_b", "all"])
    run.add_argument("--recompute", action="store_true")
    run.set_defaults(handler=_run)

    bump = sub.add_parser("bump", help="Bump the thematic coding rules version")
    bump.add_argument("--yes", action="store_true", help="Confirm the bump")
    bump.set_defaults(handler=_bump)

    compare = sub.add_parser("compare", help="Compare F-scores between assistant conditions")
    compare.add_argument("--full-transcript", action="store_true")
    compare.set_defaults(handler=_compare)

    tagger = sub.add_parser("tagger-info", help="Describe the POS tagging setup")
    tagger.set_defaults(handler=_tagger)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    setup_logging()
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(args.handler(args))
    except FormalityError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
