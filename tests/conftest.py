"""Pytest configuration and shared fixtures."""
import pytest

from config import reset_settings
from dependencies import reset_dependencies
from tutor.models.messages import ParsedProblem


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Every test starts from default settings with a fake OpenAI key."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key-fake")
    reset_settings()
    reset_dependencies()
    yield
    reset_settings()
    reset_dependencies()


@pytest.fixture
def sample_problem():
    """A typed linear-equation problem."""
    return ParsedProblem(text="Solve 2x + 5 = 13", type="algebra")


@pytest.fixture
def mock_llm_service(mocker):
    """LLM service double for testing without API calls."""
    service = mocker.Mock()
    service.provider = "openai"
    service.model_id = "gpt-4o"
    service.complete = mocker.AsyncMock(return_value="What are we trying to find?")
    return service
