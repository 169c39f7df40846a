"""CLI entry point for agentic_workflow with observability."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, List

from dispatcher import dispatch
from health import health_check_cli
from logging_utils import logger
from metrics import AgentMetrics
from models import RequestRecord
from runtime import AgentRuntime


def load_requests(path: Path, default_identity: str = "default") -> List[RequestRecord]:
    """Load a JSON batch of {id, identity, raw_text} records."""
    with path.open("r", encoding="utf-8") as handle:
        raw_requests = json.load(handle)

    requests: List[RequestRecord] = []
    for index, entry in enumerate(raw_requests, start=1):
        requests.append(
            RequestRecord(
                id=str(entry.get("id", index)),
                identity=str(entry.get("identity") or default_identity).strip(),
                raw_text=str(entry.get("raw_text", "")),
            )
        )
    return requests


async def process_requests(requests: List[RequestRecord], runtime: AgentRuntime) -> List[Dict[str, Any]]:
    """Dispatch requests one after another and collect their results."""
    results = []

    for req in requests:
        metrics = AgentMetrics()
        result = await dispatch(req.raw_text, req.identity, runtime, metrics)
        results.append(
            {
                "request_id": req.id,
                "identity": req.identity,
                "result": result.to_dict(),
                "metrics": metrics.finalize(),
            }
        )

    return results


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="agentic_workflow CLI")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--prompt", help="Run a single request")
    source.add_argument("--input", help="Path to a JSON batch of {id, identity, raw_text} records")
    source.add_argument("--health", action="store_true", help="Print health status and exit")
    parser.add_argument("--identity", default="default", help="Account the requests run as")
    parser.add_argument("--full", action="store_true", help="Include the live LLM check with --health")
    args = parser.parse_args(argv)

    if args.health:
        return health_check_cli(include_llm_check=args.full)

    if args.prompt is not None:
        requests = [RequestRecord(id="1", identity=args.identity, raw_text=args.prompt)]
    else:
        requests = load_requests(Path(args.input).resolve(), args.identity)

    runtime = AgentRuntime.from_config()
    start = time.time()
    results = asyncio.run(process_requests(requests, runtime))
    total_latency_ms = int((time.time() - start) * 1000)
    logger.info("Completed batch", extra={"extra": {"total_latency_ms": total_latency_ms, "count": len(results)}})
    print(json.dumps(results, indent=2, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
