"""PlannerService 单元测试

通过 FakeOllama 驱动 Gateway -> Normalizer -> Extractor -> Normalizer -> fix() -> Store 全链路。
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from structlog.testing import capture_logs
from taskmaster.core.exceptions import NotFoundError, TaskFileNotFoundError
from taskmaster.core.extraction import FALLBACK_NOTE, is_fallback_record
from taskmaster.core.models import Task
from taskmaster.planner.services.planner_service import PlannerService
from taskmaster.provider import ConnectivityError, ModelNotFoundError

PRD_REPLY = json.dumps(
    {
        "tasks": [
            {"id": 1, "title": "Setup", "dependencies": [], "priority": "high"},
            {"id": 2, "title": "API", "dependencies": ["1"], "testStrategy": "pytest"},
            {"id": 3, "title": "UI", "dependencies": [2, 42], "status": "done"},
        ],
        "metadata": {"projectName": "ignored"},
    }
)


@pytest.fixture
def prd_file(tmp_path: Path) -> Path:
    path = tmp_path / "prd.txt"
    path.write_text("Build a todo app with an API and a UI.", encoding="utf-8")
    return path


class TestEnsureReady:
    async def test_unreachable(self, planner_context, fake_ollama):
        fake_ollama.reachable = False
        with pytest.raises(ConnectivityError) as exc_info:
            await planner_context.planner.ensure_ready()
        assert "http://ollama.test" in exc_info.value.hint

    async def test_model_missing(self, planner_context, fake_ollama):
        fake_ollama.models = ["mistral:latest"]
        with pytest.raises(ModelNotFoundError) as exc_info:
            await planner_context.planner.ensure_ready()
        assert exc_info.value.hint == "请先执行: ollama pull llama3"


class TestParsePrd:
    """parse_prd()"""

    async def test_generates_and_saves_document(self, planner_context, fake_ollama, prd_file):
        fake_ollama.replies.append(PRD_REPLY)
        document = await planner_context.planner.parse_prd(prd_file, 3)

        assert [t.title for t in document.tasks] == ["Setup", "API", "UI"]
        assert document.tasks[1].dependencies == [1]
        assert document.tasks[2].dependencies == [2]
        assert all(t.status == "pending" for t in document.tasks)
        assert document.metadata.project_name == "Task Master Project"
        assert document.metadata.source_file == str(prd_file)

        saved = json.loads(planner_context.store.path.read_text(encoding="utf-8"))
        assert saved["tasks"][1]["testStrategy"] == "pytest"
        assert saved["metadata"]["totalTasks"] == 3

        request = fake_ollama.chat_requests[0]
        assert request["model"] == "llama3"
        assert "Build a todo app" in request["messages"][1]["content"]

    async def test_writes_debug_dumps(self, planner_context, fake_ollama, prd_file, debug_dir):
        fake_ollama.replies.append(PRD_REPLY)
        await planner_context.planner.parse_prd(prd_file, 3)

        names = sorted(p.name for p in debug_dir.iterdir())
        assert names == [
            "ollama_accumulated_debug.txt",
            "ollama_processed_debug.txt",
            "ollama_raw_debug.txt",
        ]
        assert (debug_dir / "ollama_accumulated_debug.txt").read_text(encoding="utf-8") == PRD_REPLY

    async def test_unparseable_reply_falls_back(self, planner_context, fake_ollama, prd_file):
        """无法解析的回复得到 N 条占位任务，不抛异常"""
        fake_ollama.replies.append("Sorry, I can't help with that.")
        document = await planner_context.planner.parse_prd(prd_file, 4)

        assert len(document.tasks) == 4
        assert all(is_fallback_record(t) for t in document.tasks)
        assert document.metadata.note == FALLBACK_NOTE
        assert planner_context.store.exists()

    async def test_repairs_escaping_before_parsing(self, planner_context, fake_ollama, prd_file):
        reply = '{"tasks": [{"id": 1, "title": "Add "login" page", "details": "C:\\dev"}]}'
        fake_ollama.replies.append(reply)
        document = await planner_context.planner.parse_prd(prd_file, 1)
        assert document.tasks[0].title == 'Add "login" page'
        assert document.tasks[0].details == "C:\\dev"

    async def test_missing_prd(self, planner_context, tmp_path):
        with pytest.raises(FileNotFoundError):
            await planner_context.planner.parse_prd(tmp_path / "missing.txt", 3)


class TestGenerateSubtasks:
    """generate_subtasks()"""

    async def test_count_mismatch_renumbers_and_warns(self, planner_context, fake_ollama):
        """请求 3 个只得到 2 个 [7, 9]：重排为 [offset, offset+1]，告警且不抛出"""
        fake_ollama.replies.append(
            json.dumps([{"id": 7, "title": "First"}, {"id": 9, "title": "Second"}])
        )
        task = Task(id=2, title="API")

        with capture_logs() as logs:
            subtasks = await planner_context.planner.generate_subtasks(task, 3, 4)

        assert [s.id for s in subtasks] == [4, 5]
        assert [s.title for s in subtasks] == ["First", "Second"]
        assert any(e["event"] == "subtask_count_mismatch" for e in logs)

    async def test_uses_subtask_debug_label(self, planner_context, fake_ollama, debug_dir):
        fake_ollama.replies.append("[]")
        await planner_context.planner.generate_subtasks(Task(id=1), 1, 1)
        assert (debug_dir / "ollama_subtasks_processed_debug.txt").exists()


class TestExpandTask:
    """expand_task()"""

    async def test_appends_after_highest_id_and_saves(self, planner_context, fake_ollama, tasks_file):
        fake_ollama.replies.append(
            json.dumps(
                [
                    {"id": 3, "title": "C", "dependencies": ["3.2"]},
                    {"id": 4, "title": "D", "dependencies": ["3.3", 99]},
                ]
            )
        )
        subtasks = await planner_context.planner.expand_task(3, 2, "keep it small")

        assert [s.id for s in subtasks] == [3, 4]
        saved = planner_context.store.load()
        task = saved.find_task(3)
        assert [s.title for s in task.subtasks] == ["A", "B", "C", "D"]
        assert task.subtasks[3].dependencies == ["3.3"]
        assert task.subtasks[3].parent_task_id == 3
        assert "keep it small" in fake_ollama.chat_requests[0]["messages"][1]["content"]
        assert '"id": 3' in fake_ollama.chat_requests[0]["messages"][1]["content"]

    async def test_unknown_task(self, planner_context, tasks_file):
        with pytest.raises(NotFoundError):
            await planner_context.planner.expand_task(42, 2)

    async def test_missing_task_file(self, planner_context):
        with pytest.raises(TaskFileNotFoundError):
            await planner_context.planner.expand_task(1, 2)


class TestGatewayErrorsPropagate:
    async def test_generate_subtasks_propagates_gateway_error(self):
        """Gateway 错误原样向上传播"""
        gateway = MagicMock()
        gateway.generate = AsyncMock(side_effect=ConnectivityError("http://ollama.test"))
        service = PlannerService(gateway, store=MagicMock())

        with pytest.raises(ConnectivityError):
            await service.generate_subtasks(Task(id=1), 2, 1)
