import os
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import hostdeck...` works
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Use offscreen platform for Qt during tests to avoid needing a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from hostdeck.services.api.client import FileHostValidationError  # noqa: E402
from hostdeck.services.tasks import InlineRunner  # noqa: E402
from hostdeck.tests.fakes import DeferredRunner, DummyClient, file, folder  # noqa: E402


@pytest.fixture
def inline_runner():
    return InlineRunner()


@pytest.fixture
def deferred_runner():
    return DeferredRunner()


@pytest.fixture
def dummy_client():
    return DummyClient(
        {
            "/": [folder("/docs"), file("/b.txt", 200), file("/a.txt", 100), file("/c.log", 5)],
            "/docs": [file("/docs/readme.md", 42)],
        }
    )


@pytest.fixture
def server_error():
    return FileHostValidationError("nope", 400)
