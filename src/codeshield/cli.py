from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from .analyze.ai.ollama_client import OllamaClient
from .analyze.ai.verifier import AIVerifier
from .api.schemas.scans import FindingOut, ScanStatusOut
from .config import CodeShieldSettings, ScanConfig, get_settings
from .constants import ScanStatus
from .ingest.project import create_project
from .scan.service import ScanService
from .scan.store import ScanStore


def _serve(args: argparse.Namespace, settings: CodeShieldSettings) -> int:
    import uvicorn

    from .api.main import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level="info")
    return 0


async def _scan(args: argparse.Namespace, settings: CodeShieldSettings) -> dict[str, Any]:
    store = ScanStore()
    client = OllamaClient(
        base_url=settings.ollama_url,
        timeout_seconds=settings.ai_request_timeout_seconds,
        health_timeout_seconds=settings.ai_health_timeout_seconds,
    )
    service = ScanService(store, AIVerifier(client), settings=settings)

    project = service.register_project(
        create_project(Path(args.path), max_file_size_bytes=settings.max_file_size_bytes)
    )
    config = ScanConfig.from_settings(
        settings,
        enable_ai=args.ai,
        model=args.model,
        max_concurrent_ai=args.concurrency,
        severity_threshold=args.min_severity,
        exclude_paths=args.exclude or None,
    )
    scan = await service.start_scan(project.id, config)
    await service.wait(scan.id)

    status = ScanStatusOut.model_validate(service.get_status(scan.id), from_attributes=True)
    findings = [FindingOut.model_validate(f, from_attributes=True) for f in service.get_findings(scan.id)]
    return {
        "project": {"id": project.id, "name": project.name, "file_count": project.file_count},
        "scan": status.model_dump(mode="json"),
        "findings": [f.model_dump(mode="json") for f in findings],
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="codeshield", description="CodeShield security scanner")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    scan = sub.add_parser("scan", help="Scan a project directory and print the report as JSON")
    scan.add_argument("path", help="Directory of the project to scan")
    scan.add_argument("--ai", action="store_true", help="Verify findings with the local AI service")
    scan.add_argument("--model", default=None, help="AI model name (default from settings)")
    scan.add_argument("--concurrency", type=int, default=None, help="Concurrent AI requests (1-16)")
    scan.add_argument(
        "--min-severity",
        choices=["low", "medium", "high", "critical"],
        default=None,
        help="Drop findings below this severity",
    )
    scan.add_argument("--exclude", action="append", default=[], help="Glob or path prefix to skip (repeatable)")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.command == "serve":
        return _serve(args, settings)

    if not Path(args.path).is_dir():
        print(f"Not a directory: {args.path}", file=sys.stderr)
        return 2

    report = asyncio.run(_scan(args, settings))
    print(json.dumps(report, indent=2))
    return 0 if report["scan"]["status"] == ScanStatus.COMPLETED.value else 1


if __name__ == "__main__":
    sys.exit(main())
