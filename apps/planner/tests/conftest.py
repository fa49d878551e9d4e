"""apps/planner 测试配置 -- 模拟 Ollama 服务 + PlannerContext fixture"""

import json
from pathlib import Path

import httpx
import pytest
from taskmaster.planner.deps import create_planner_context
from taskmaster.provider import ProviderConfig, RetryPolicy


class FakeOllama:
    """按顺序回放预设回复的 Ollama 模拟服务"""

    def __init__(self, ndjson, models: tuple[str, ...] = ("llama3:latest",)) -> None:
        self._ndjson = ndjson
        self.models = list(models)
        self.replies: list[str] = []
        self.chat_requests: list[dict] = []
        self.reachable = True

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if not self.reachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": n} for n in self.models]})
        self.chat_requests.append(json.loads(request.content))
        return httpx.Response(200, content=self._ndjson(self.replies.pop(0)))


@pytest.fixture
def fake_ollama(ndjson) -> FakeOllama:
    return FakeOllama(ndjson)


@pytest.fixture
def debug_dir(tmp_path: Path) -> Path:
    return tmp_path / "debug"


@pytest.fixture
async def planner_context(fake_ollama, recording_sleep, tmp_tasks_path: Path, debug_dir: Path):
    """接入 FakeOllama 的 PlannerContext（调试落盘开启）"""
    config = ProviderConfig(
        api_base_url="http://ollama.test",
        debug=True,
        debug_dir=debug_dir,
        progress_interval_s=0.01,
    )
    ctx = create_planner_context(
        provider_config=config,
        tasks_path=tmp_tasks_path,
        transport=httpx.MockTransport(fake_ollama),
        retry_policy=RetryPolicy(sleep=recording_sleep),
    )
    yield ctx
    await ctx.aclose()
