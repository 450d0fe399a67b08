from __future__ import annotations

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from codeshield.config import CodeShieldSettings
from codeshield.scan.store import ScanStore


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture
def settings() -> CodeShieldSettings:
    return CodeShieldSettings(_env_file=None, yield_every_files=2)


@pytest.fixture
def sample_project_dir(tmp_path: Path) -> Path:
    """A small extracted project with a few known vulnerabilities."""
    root = tmp_path / "demo-app"
    (root / "src").mkdir(parents=True)
    (root / "node_modules" / "left-pad").mkdir(parents=True)
    (root / "src" / "auth.js").write_text(
        "const express = require('express');\n"
        'const password = "abcd1234efgh";\n'
        "module.exports = { password };\n"
    )
    (root / "src" / "view.jsx").write_text(
        "export function View({ html }) {\n"
        "  return <div dangerouslySetInnerHTML={{ __html: html }} />;\n"
        "}\n"
    )
    (root / "src" / "util.py").write_text("def add(a, b):\n    return a + b\n")
    (root / "README.txt").write_text("password = 'not scanned'\n")
    (root / "logo.png").write_bytes(b"\x89PNG\r\n")
    (root / "node_modules" / "left-pad" / "index.js").write_text("eval(x)\n")
    return root


@pytest.fixture
def store() -> ScanStore:
    return ScanStore()
