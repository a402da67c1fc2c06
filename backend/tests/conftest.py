"""
Pytest configuration and fixtures
"""
import json
import os
import stat
import sys
import textwrap
from pathlib import Path

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Settings are cached on first import, so the test environment goes in first
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["ENABLE_TRACING"] = "false"
os.environ.setdefault("APP_ENV", "test")

from fastapi.testclient import TestClient

from app.core.config import Settings
from app.services.query_bridge import QueryBridge, get_query_bridge

ENGINE_PRELUDE = """\
import json
import sys

with open({calls_log!r}, "a", encoding="utf-8") as _log:
    _log.write(json.dumps(sys.argv[1:]) + "\\n")
"""

# Resolves dotted paths like ".a.b" against the input document
ECHO_ENGINE = """\
query, path = sys.argv[1], sys.argv[2]
with open(path, encoding="utf-8") as f:
    data = json.load(f)
for part in [p for p in query.split(".") if p]:
    data = data[part]
print(json.dumps(data))
"""

STDERR_ON_SUCCESS_ENGINE = """\
print("1")
sys.stderr.write("Warning: '" + sys.argv[1] + "' syntax is deprecated\\n")
"""

VISUALIZE_ENGINE = """\
assert sys.argv[1] == "--visualize"
query, path = sys.argv[2], sys.argv[3]
with open(path, encoding="utf-8") as f:
    data = json.load(f)
trace = {
    "tokens": [{"type": "DOT", "value": "."}, {"type": "IDENT", "value": query.lstrip(".")}],
    "parseSteps": [],
    "executionTrace": [{"step": 1, "op": "field", "input": data}],
    "finalResult": data.get(query.lstrip(".")),
}
print(json.dumps(trace))
"""


class FakeEngine:
    """Executable Python script standing in for a jqlite binary"""

    def __init__(self, path: Path, calls_log: Path):
        self.path = path
        self.calls_log = calls_log

    @property
    def calls(self):
        if not self.calls_log.exists():
            return []
        return [json.loads(line) for line in self.calls_log.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def make_engine(tmp_path):
    """Write a fake engine script whose body runs after argv is logged"""
    engines_dir = tmp_path / "engines"
    engines_dir.mkdir()

    def _make(body: str, name: str = "jqlite") -> FakeEngine:
        path = engines_dir / name
        calls_log = engines_dir / f"{name}.calls"
        source = (
            f"#!{sys.executable}\n"
            + ENGINE_PRELUDE.format(calls_log=str(calls_log))
            + textwrap.dedent(body)
        )
        path.write_text(source, encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeEngine(path, calls_log)

    return _make


@pytest.fixture
def transient_dir(tmp_path) -> Path:
    path = tmp_path / "transient"
    path.mkdir()
    return path


@pytest.fixture
def make_settings(tmp_path, transient_dir):
    """Settings pointing at fake engines and an isolated transient directory"""

    def _make(**overrides) -> Settings:
        values = {
            "jqlite_path": str(tmp_path / "missing" / "jqlite"),
            "jqlite_viz_path": str(tmp_path / "missing" / "jqlite_viz"),
            "temp_dir": str(transient_dir),
            "query_timeout_ms": 5000,
            "log_file_enabled": False,
            "enable_tracing": False,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_client(make_settings):
    """Test client whose bridge is built from the given settings"""
    from main import app

    def _make(bridge: QueryBridge = None, raise_server_exceptions: bool = True, **overrides) -> TestClient:
        bridge = bridge or QueryBridge(make_settings(**overrides))
        app.dependency_overrides[get_query_bridge] = lambda: bridge
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    yield _make
    app.dependency_overrides.clear()
