from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import pytest

from codeshield.analyze.ai.verifier import AIVerifier
from codeshield.config import ScanConfig
from codeshield.constants import FindingStatus, FindingType, ScanStage, ScanStatus, Severity
from codeshield.errors import FindingNotFoundError, ProjectNotFoundError, ScanNotFoundError
from codeshield.ingest.file_tree import FileNode
from codeshield.ingest.project import create_project, project_from_tree
from codeshield.models import FindingFilters, ScanProgress
from codeshield.scan.service import ScanService, compute_risk_score, stage_percentage
from codeshield.scan.store import ScanStore


class StubOllama:
    def __init__(self, verdict: Optional[dict] = None, available: bool = True, delay: float = 0.0):
        self.verdict = verdict or {"isTruePositive": True, "confidence": 0.9}
        self.available = available
        self.delay = delay
        self.timeout = 5
        self.calls = 0

    async def is_available(self) -> bool:
        return self.available

    async def generate(self, model: str, prompt: str, format: Optional[str] = "json") -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return json.dumps(self.verdict)


class RecordingStore(ScanStore):
    def __init__(self) -> None:
        super().__init__()
        self.progress_log: List[ScanProgress] = []

    def update_progress(self, scan_id: str, progress: ScanProgress) -> None:
        self.progress_log.append(progress)
        super().update_progress(scan_id, progress)


def _failing_loader(exc: BaseException):
    def load() -> str:
        raise exc

    return load


def _register(store: ScanStore, nodes: List[FileNode]) -> str:
    project = project_from_tree(nodes, path=Path("/virtual"), name="virtual")
    store.save_project(project)
    return project.id


def _service(store: ScanStore, settings, client: Optional[StubOllama] = None) -> ScanService:
    return ScanService(store, AIVerifier(client or StubOllama()), settings=settings)


async def _run(service: ScanService, project_id: str, config: Optional[ScanConfig] = None):
    scan = await service.start_scan(project_id, config or ScanConfig())
    await service.wait(scan.id)
    return service.get_scan(scan.id)


@pytest.mark.anyio
async def test_clean_project_completes_with_zero_risk(store, settings) -> None:
    project_id = _register(store, [FileNode.from_content("a.py", "print('hi')\n")])
    scan = await _run(_service(store, settings), project_id)

    assert scan.status == ScanStatus.COMPLETED
    assert scan.stats.risk_score == 0
    assert scan.stats.files_scanned == 1
    assert scan.stats.lines_scanned == 1
    assert scan.completed_at is not None
    assert scan.stats.duration >= 0
    assert scan.progress.percentage == 100
    assert scan.progress.stage == ScanStage.REPORT
    assert scan.progress.message == "Scan completed"
    assert store.get_findings(scan.id) == []


@pytest.mark.anyio
async def test_start_scan_returns_pending_immediately(store, settings) -> None:
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])
    service = _service(store, settings)

    scan = await service.start_scan(project_id, ScanConfig())

    assert scan.status == ScanStatus.PENDING
    assert scan.progress.percentage == 0
    assert scan.progress.message == "Initializing scan..."
    assert scan.progress.total_files == 1
    await service.wait(scan.id)
    assert service.get_status(scan.id).status == ScanStatus.COMPLETED


@pytest.mark.anyio
async def test_unknown_project_rejected(store, settings) -> None:
    with pytest.raises(ProjectNotFoundError):
        await _service(store, settings).start_scan("missing", ScanConfig())


@pytest.mark.anyio
async def test_unreadable_file_is_skipped(store, settings) -> None:
    nodes = [FileNode.from_content(f"src/f{i}.js", "const x = 1;\n") for i in range(9)]
    nodes.insert(
        4,
        FileNode(
            path="src/gone.js",
            name="gone.js",
            type="file",
            language="javascript",
            loader=_failing_loader(FileNotFoundError("src/gone.js")),
        ),
    )
    project_id = _register(store, nodes)

    scan = await _run(_service(store, settings), project_id)

    assert scan.status == ScanStatus.COMPLETED
    assert scan.stats.files_scanned == 9
    assert scan.progress.files_processed == 10
    assert scan.progress.total_files == 10


@pytest.mark.anyio
async def test_unexpected_error_fails_scan(store, settings) -> None:
    nodes = [
        FileNode.from_content("a.js", "eval(x)\n"),
        FileNode(
            path="b.js",
            name="b.js",
            type="file",
            language="javascript",
            loader=_failing_loader(RuntimeError("disk on fire")),
        ),
    ]
    project_id = _register(store, nodes)

    scan = await _run(_service(store, settings), project_id)

    assert scan.status == ScanStatus.FAILED
    assert scan.error == "disk on fire"
    assert scan.stats.high == 0
    assert scan.stats.risk_score == 0
    # Findings recorded before the failure are kept.
    assert [f.rule_id for f in store.get_findings(scan.id)] == ["INJ003"]


@pytest.mark.anyio
async def test_unknown_language_files_not_counted(store, settings) -> None:
    nodes = [
        FileNode.from_content("a.js", "const x = 1;\n"),
        FileNode.from_content("notes.txt", "password = 'abcd'\n"),
    ]
    project_id = _register(store, nodes)

    scan = await _run(_service(store, settings), project_id)

    assert scan.stats.files_scanned == 1
    assert scan.progress.files_processed == 2
    assert store.get_findings(scan.id) == []


@pytest.mark.anyio
async def test_risk_score_and_tallies(store, settings) -> None:
    project_id = _register(
        store,
        [
            FileNode.from_content("a.js", 'const password = "abcd1234efgh";\n'),
            FileNode.from_content("b.js", "const n = Math.random();\n"),
        ],
    )
    scan = await _run(_service(store, settings), project_id)

    assert (scan.stats.high, scan.stats.low, scan.stats.critical, scan.stats.medium) == (1, 1, 0, 0)
    # (5 + 1) / 2 files * 10 = 30, capped at 10
    assert scan.stats.risk_score == 10


@pytest.mark.anyio
async def test_ai_disabled_never_calls_service(store, settings) -> None:
    client = StubOllama()
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])
    scan = await _run(_service(store, settings, client), project_id)

    assert client.calls == 0
    (finding,) = store.get_findings(scan.id)
    assert finding.type == FindingType.STATIC


@pytest.mark.anyio
async def test_ai_unavailable_still_completes(store, settings) -> None:
    client = StubOllama(available=False)
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])

    scan = await _run(_service(store, settings, client), project_id, ScanConfig(enable_ai=True))

    assert scan.status == ScanStatus.COMPLETED
    assert client.calls == 0
    (finding,) = store.get_findings(scan.id)
    assert finding.type == FindingType.STATIC
    assert scan.stats.high == 1


@pytest.mark.anyio
async def test_false_positives_excluded_from_tallies(store, settings) -> None:
    client = StubOllama({"isTruePositive": False, "confidence": 0.95, "riskAnalysis": "test code"})
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])

    scan = await _run(_service(store, settings, client), project_id, ScanConfig(enable_ai=True))

    assert scan.status == ScanStatus.COMPLETED
    (finding,) = store.get_findings(scan.id)
    assert finding.status == FindingStatus.FALSE_POSITIVE
    assert finding.type == FindingType.AI_VERIFIED
    assert scan.stats.high == 0
    assert scan.stats.risk_score == 0
    assert store.status_view(scan.id).findings_count == 1


@pytest.mark.anyio
async def test_progress_is_monotonic_per_stage(settings) -> None:
    store = RecordingStore()
    nodes = [FileNode.from_content(f"f{i}.js", f"eval(x{i})\n") for i in range(7)]
    project_id = _register(store, nodes)

    scan = await _run(_service(store, settings), project_id, ScanConfig(enable_ai=True))

    for stage in (ScanStage.STATIC, ScanStage.AI):
        values = [p.percentage for p in store.progress_log if p.stage == stage]
        assert values, stage
        assert values == sorted(values)
        assert max(values) < 100
    static_messages = [p.message for p in store.progress_log if p.stage == ScanStage.STATIC]
    assert static_messages[-1] == "Scanning f6.js..."
    ai_messages = [p.message for p in store.progress_log if p.stage == ScanStage.AI]
    assert ai_messages[0] == "Running AI analysis..."
    assert ai_messages[-1] == "Analyzing finding 7/7..."
    assert scan.progress.percentage == 100


@pytest.mark.anyio
async def test_config_filters_apply_before_static_stage(store, settings) -> None:
    nodes = [
        FileNode.from_content("src/app.js", "eval(a)\nconst r = Math.random();\n"),
        FileNode.from_content("vendor/lib.js", "eval(b)\n"),
        FileNode.from_content("tool.py", "eval(c)\n"),
    ]
    project_id = _register(store, nodes)
    config = ScanConfig(exclude_paths=["vendor/"], languages=["JavaScript"], severity_threshold="high")

    scan = await _run(_service(store, settings), project_id, config)

    assert scan.progress.total_files == 1
    findings = store.get_findings(scan.id)
    assert [(f.file, f.rule_id) for f in findings] == [("src/app.js", "INJ003")]


@pytest.mark.anyio
async def test_cancel_before_start(store, settings) -> None:
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])
    service = _service(store, settings)

    scan = await service.start_scan(project_id, ScanConfig())
    assert await service.cancel_scan(scan.id) is True
    await service.wait(scan.id)

    current = service.get_scan(scan.id)
    assert current.status == ScanStatus.CANCELLED
    assert current.completed_at is not None
    assert store.get_findings(scan.id) == []


@pytest.mark.anyio
async def test_cancel_during_ai_stage(store, settings) -> None:
    client = StubOllama(delay=5)
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])
    service = _service(store, settings, client)

    scan = await service.start_scan(project_id, ScanConfig(enable_ai=True))
    for _ in range(200):
        if client.calls:
            break
        await asyncio.sleep(0.01)
    assert client.calls == 1

    assert await service.cancel_scan(scan.id) is True
    await service.wait(scan.id)

    current = service.get_scan(scan.id)
    assert current.status == ScanStatus.CANCELLED
    assert current.stats.risk_score == 0
    assert current.progress.message == "Scan cancelled"


@pytest.mark.anyio
async def test_cancel_finished_scan_is_noop(store, settings) -> None:
    project_id = _register(store, [FileNode.from_content("a.js", "const x = 1;\n")])
    service = _service(store, settings)
    scan = await _run(service, project_id)

    assert await service.cancel_scan(scan.id) is False
    assert service.get_scan(scan.id).status == ScanStatus.COMPLETED


@pytest.mark.anyio
async def test_concurrent_scans_of_same_project(store, settings) -> None:
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])
    service = _service(store, settings)

    first = await service.start_scan(project_id, ScanConfig())
    second = await service.start_scan(project_id, ScanConfig())
    await asyncio.gather(service.wait(first.id), service.wait(second.id))

    for scan_id in (first.id, second.id):
        assert service.get_status(scan_id).status == ScanStatus.COMPLETED
        assert [f.scan_id for f in service.get_findings(scan_id)] == [scan_id]


@pytest.mark.anyio
async def test_get_findings_with_filters(store, settings) -> None:
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\nMath.random();\n")])
    service = _service(store, settings)
    scan = await _run(service, project_id)

    low = service.get_findings(scan.id, FindingFilters(severity=Severity.LOW))
    assert [f.rule_id for f in low] == ["CRY002"]
    with pytest.raises(ScanNotFoundError):
        service.get_findings("missing")


@pytest.mark.anyio
async def test_analyze_single_finding(store, settings) -> None:
    client = StubOllama({"isTruePositive": True, "confidence": 0.7, "fixSuggestion": "JSON.parse(x)"})
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])
    service = _service(store, settings, client)
    scan = await _run(service, project_id)
    (finding,) = store.get_findings(scan.id)

    updated = await service.analyze_finding(scan.id, finding.id)

    assert updated is finding
    assert finding.type == FindingType.AI_VERIFIED
    assert finding.fix == "JSON.parse(x)"
    assert finding.confidence == 0.7


@pytest.mark.anyio
async def test_analyze_unknown_finding(store, settings) -> None:
    project_id = _register(store, [FileNode.from_content("a.js", "eval(x)\n")])
    service = _service(store, settings)
    first = await _run(service, project_id)
    second = await _run(service, project_id)
    (finding,) = store.get_findings(first.id)

    with pytest.raises(FindingNotFoundError):
        await service.analyze_finding(first.id, "nope")
    with pytest.raises(FindingNotFoundError):
        await service.analyze_finding(second.id, finding.id)
    with pytest.raises(ScanNotFoundError):
        await service.analyze_finding("missing", finding.id)


@pytest.mark.anyio
async def test_scan_of_directory_project(store, settings, sample_project_dir: Path) -> None:
    project = create_project(sample_project_dir)
    store.save_project(project)

    scan = await _run(_service(store, settings), project.id)

    assert scan.status == ScanStatus.COMPLETED
    rule_ids = sorted(f.rule_id for f in store.get_findings(scan.id))
    assert rule_ids == ["SEC005", "XSS001"]
    # auth.js, view.jsx, util.py; README.txt is not a known language
    assert scan.stats.files_scanned == 3
    assert scan.progress.total_files == 4


def test_stage_percentage_caps_below_completion() -> None:
    assert stage_percentage(0, 0) == 0
    assert stage_percentage(1, 3) == 33
    assert stage_percentage(2, 3) == 67
    assert stage_percentage(1, 8) == 13
    assert stage_percentage(3, 3) == 99


def test_risk_score_formula() -> None:
    assert compute_risk_score(0, 0, 0, 0, 0) == 0
    assert compute_risk_score(1, 0, 0, 0, 1) == 10
    assert compute_risk_score(0, 1, 0, 0, 20) == 3  # 2.5 rounds half up
    assert compute_risk_score(0, 0, 1, 0, 10) == 2
    assert compute_risk_score(0, 0, 0, 1, 0) == 10
    assert compute_risk_score(0, 0, 0, 3, 100) == 0
