"""集成测试共享 fixture -- 脚本化 Ollama 服务 + 完整组合根"""

import json
from pathlib import Path

import httpx
import pytest
from taskmaster.planner.deps import create_planner_context
from taskmaster.provider import ProviderConfig, RetryPolicy


class ScriptedOllama:
    """按脚本回放 chat 响应的 Ollama 模拟服务

    script 中每一项是 bytes（NDJSON 响应体）、int（错误状态码）
    或 Exception 子类（传输层异常）。
    """

    def __init__(self) -> None:
        self.script: list = []
        self.chat_requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "llama3:latest"}]})

        self.chat_requests.append(json.loads(request.content))
        step = self.script.pop(0)
        if isinstance(step, type) and issubclass(step, Exception):
            raise step("scripted failure", request=request)
        if isinstance(step, int):
            return httpx.Response(step, json={"error": "model is loading"})
        return httpx.Response(200, content=step)


@pytest.fixture
def ollama() -> ScriptedOllama:
    return ScriptedOllama()


@pytest.fixture
def prd_file(tmp_path: Path) -> Path:
    path = tmp_path / "prd.txt"
    path.write_text(
        "# Todo App\n\nUsers can create, complete and delete todo items.\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
async def context(ollama, recording_sleep, tmp_tasks_path: Path, tmp_path: Path):
    """完整 PlannerContext：真实 Gateway/RetryPolicy/Store，仅替换传输层"""
    config = ProviderConfig(
        api_base_url="http://ollama.test",
        debug=True,
        debug_dir=tmp_path / "debug",
        progress_interval_s=0.01,
    )
    ctx = create_planner_context(
        provider_config=config,
        tasks_path=tmp_tasks_path,
        transport=httpx.MockTransport(ollama),
        retry_policy=RetryPolicy(sleep=recording_sleep),
    )
    yield ctx
    await ctx.aclose()
