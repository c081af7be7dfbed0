from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from chat_gateway.api.deps import get_upstream_transport
from chat_gateway.core.config import settings
from chat_gateway.main import app
from chat_gateway.tests.utils.upstream import StubUpstream


@pytest.fixture(autouse=True)
def provider_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test-openai")
    monkeypatch.setattr(settings, "DEEPSEEK_API_KEY", "sk-test-deepseek")
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-gemini-key")


@pytest.fixture(scope="module")
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def use_upstream() -> Generator[Callable[[StubUpstream], StubUpstream], None, None]:
    def _use(upstream: StubUpstream) -> StubUpstream:
        app.dependency_overrides[get_upstream_transport] = lambda: upstream.transport
        return upstream

    yield _use
    app.dependency_overrides.clear()
