import os
from pathlib import Path

from dotenv import load_dotenv
import pytest

# Must be set before calmirror.database is imported
os.environ.setdefault("PYTEST_RUN", "1")

# Load environment variables for tests
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')


@pytest.fixture
def fake_gateway():
    from backend.tests.google_mocks import FakeCalendarGateway

    return FakeCalendarGateway()
