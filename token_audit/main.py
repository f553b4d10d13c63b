"""Command-line entry point: audit one or more X1 tokens and print JSON.

Usage:
    python -m token_audit.main <MINT> [<MINT> ...] [--file mints.txt]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from config.settings import settings
from token_audit.models.report import AuditFailure
from token_audit.parsers.audit import audit_tokens
from token_audit.parsers.context import AuditContext
from token_audit.utils.logger import setup_logger


def read_mints(args: argparse.Namespace) -> list[str]:
    """Mints from positional args then ``--file`` (one per line, # comments)."""
    mints = list(args.mints)
    if args.file:
        for line in Path(args.file).read_text(encoding="utf-8").splitlines():
            line = line.split("#", 1)[0].strip()
            if line:
                mints.append(line)
    # Preserve first-seen order
    return list(dict.fromkeys(mints))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Audit X1 token rug-pull risk")
    parser.add_argument("mints", nargs="*", help="Token mint addresses")
    parser.add_argument("--file", help="File with one mint address per line")
    parser.add_argument("--rpc", help=f"RPC URL (default: {settings.x1_rpc_url})")
    parser.add_argument(
        "--depth",
        type=int,
        help=f"Signatures scanned per LP mint (default: {settings.burn_history_depth})",
    )
    parser.add_argument("--json-logs", action="store_true", help="Structured log output")
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(json_logs=args.json_logs, log_dir=settings.log_dir or None)

    mints = read_mints(args)
    if not mints:
        logger.error("No mint addresses given")
        return 2

    overrides = {}
    if args.rpc:
        overrides["x1_rpc_url"] = args.rpc
    if args.depth:
        overrides["burn_history_depth"] = args.depth
    run_settings = settings.model_copy(update=overrides)

    ctx = AuditContext.from_settings(run_settings)
    try:
        logger.info(f"[AUDIT] Auditing {len(mints)} token(s) via {run_settings.x1_rpc_url}")
        results = await audit_tokens(ctx, mints)
    finally:
        await ctx.close()

    output = [r.to_dict() for r in results]
    print(json.dumps(output[0] if len(output) == 1 else output, indent=2, ensure_ascii=False))

    if all(isinstance(r, AuditFailure) for r in results):
        return 1
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
