import io
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

path_str = str(ROOT)
if path_str not in sys.path:
    sys.path.insert(0, path_str)

from delivery_tracker.common.json_logger import JsonLogger  # noqa: E402


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def json_logger(log_stream: io.StringIO) -> JsonLogger:
    logger = JsonLogger(run_id="test-run", stream=log_stream, log_file_path=None)
    yield logger
    logger.close()
