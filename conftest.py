"""全局 pytest 配置 -- 任务文档与 Ollama 模拟响应的公共 fixture"""

import json
from pathlib import Path

import pytest


def _ndjson(*fragments: str, model: str = "llama3") -> bytes:
    """按 Ollama 流式格式拼出逐行 JSON 响应体"""
    lines = [
        json.dumps({"model": model, "message": {"role": "assistant", "content": f}, "done": False})
        for f in fragments
    ]
    lines.append(
        json.dumps(
            {
                "model": model,
                "message": {"role": "assistant", "content": ""},
                "done": True,
                "prompt_eval_count": 12,
                "eval_count": 34,
            }
        )
    )
    return ("\n".join(lines) + "\n").encode()


@pytest.fixture
def ndjson():
    """Ollama 流式响应体构造函数：ndjson("片段1", "片段2", ...) -> bytes"""
    return _ndjson


@pytest.fixture
def tmp_tasks_path(tmp_path: Path) -> Path:
    """提供临时任务文档路径"""
    return tmp_path / "tasks" / "tasks.json"


@pytest.fixture
def sample_document() -> dict:
    """三个任务的磁盘文档：2 -> 1，3 -> {1, 2}，任务 3 带两个子任务"""
    return {
        "tasks": [
            {"id": 1, "title": "Setup", "status": "done", "dependencies": []},
            {"id": 2, "title": "Core", "status": "pending", "dependencies": [1]},
            {
                "id": 3,
                "title": "Feature",
                "status": "pending",
                "dependencies": [1, 2],
                "testStrategy": "pytest",
                "subtasks": [
                    {"id": 1, "title": "A", "dependencies": [], "parentTaskId": 3},
                    {"id": 2, "title": "B", "dependencies": ["3.1"], "parentTaskId": 3},
                ],
            },
        ],
        "metadata": {
            "projectName": "Demo",
            "totalTasks": 3,
            "sourceFile": "prd.txt",
            "generatedAt": "2026-01-01",
        },
    }


@pytest.fixture
def tasks_file(tmp_tasks_path: Path, sample_document: dict) -> Path:
    """写好 sample_document 的任务文档"""
    tmp_tasks_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_tasks_path.write_text(json.dumps(sample_document), encoding="utf-8")
    return tmp_tasks_path


class RecordingSleep:
    """记录重试等待时长而不真正等待"""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
