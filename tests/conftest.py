import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from supportsync.lib.log import configure_logging


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep every test away from the real data dir, .env file and tokens."""
    for key in list(os.environ):
        if key.startswith("SUPPORTSYNC_") or key == "GAPI_TOKEN":
            monkeypatch.delenv(key, raising=False)
    data_home = tmp_path / "data"
    monkeypatch.setenv("XDG_DATA_HOME", str(data_home))
    monkeypatch.chdir(tmp_path)
    configure_logging(verbose=True)
    return data_home


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "supportsync.db"
