"""CLI 入口单元测试 -- 依赖管理命令（无需生成服务）"""

import json
import logging
from pathlib import Path

import pytest
import structlog
from taskmaster.planner import __main__ as cli
from taskmaster.planner.logging_config import setup_logging


@pytest.fixture
def run_cli(monkeypatch, tasks_file: Path):
    """以给定参数执行 main()，返回退出码"""
    monkeypatch.setenv("TASKMASTER_TASKS_PATH", str(tasks_file))
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)

    def _run(*args: str) -> int:
        monkeypatch.setattr("sys.argv", ["task-master", *args])
        try:
            cli.main()
        except SystemExit as e:
            return int(e.code or 0)
        return 0

    return _run


class TestCli:
    def test_no_command_prints_usage(self, run_cli, capsys):
        assert run_cli() == 1
        assert "用法" in capsys.readouterr().out

    def test_unknown_command(self, run_cli, capsys):
        assert run_cli("explode") == 1
        assert "未知命令: explode" in capsys.readouterr().out

    def test_validate_clean(self, run_cli, capsys):
        assert run_cli("validate-dependencies") == 0
        assert "依赖图检查通过" in capsys.readouterr().out

    def test_add_and_remove_dependency(self, run_cli, capsys, tasks_file):
        assert run_cli("add-dependency", "3.1", "2") == 0
        assert "已添加依赖: 3.1 -> 2" in capsys.readouterr().out
        data = json.loads(tasks_file.read_text(encoding="utf-8"))
        assert data["tasks"][2]["subtasks"][0]["dependencies"] == [2]

        assert run_cli("remove-dependency", "3.1", "2") == 0
        assert "已删除依赖" in capsys.readouterr().out

    def test_cycle_reported_as_error(self, run_cli, capsys):
        assert run_cli("add-dependency", "1", "3") == 1
        assert "会形成环" in capsys.readouterr().err

    def test_fix_dependencies(self, run_cli, capsys, tasks_file, sample_document):
        sample_document["tasks"][1]["dependencies"] = [1, 99]
        tasks_file.write_text(json.dumps(sample_document), encoding="utf-8")

        assert run_cli("fix-dependencies") == 0
        out = capsys.readouterr().out
        assert "删除 2 -> 99" in out
        assert run_cli("fix-dependencies") == 0
        assert "依赖图无需修复" in capsys.readouterr().out

    def test_duplicate_task_id(self, run_cli, capsys, tasks_file, sample_document):
        """手工编辑出的重复任务 ID 被诊断并重新分配"""
        sample_document["tasks"][1]["id"] = 1
        tasks_file.write_text(json.dumps(sample_document), encoding="utf-8")

        assert run_cli("validate-dependencies") == 0
        assert "任务 ID 1 重复出现" in capsys.readouterr().out

        assert run_cli("fix-dependencies") == 0
        assert "重复的任务 1 改为任务 4" in capsys.readouterr().out
        data = json.loads(tasks_file.read_text(encoding="utf-8"))
        assert [t["id"] for t in data["tasks"]] == [1, 4, 3]

        assert run_cli("validate-dependencies") == 0
        assert "依赖图检查通过" in capsys.readouterr().out

    def test_missing_task_file(self, run_cli, capsys, monkeypatch, tmp_path):
        monkeypatch.setenv("TASKMASTER_TASKS_PATH", str(tmp_path / "none.json"))
        assert run_cli("validate-dependencies") == 1
        assert "任务文件不存在" in capsys.readouterr().err

    def test_invalid_count_argument(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli._int_arg(["abc"], 0, "task_id")
        assert exc_info.value.code == 1
        assert "task_id 必须是正整数: abc" in capsys.readouterr().out

    def test_optional_count_argument(self):
        assert cli._int_arg(["7"], 1, "num") is None
        assert cli._int_arg(["7", "4"], 1, "num") == 4


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        httpx_logger = logging.getLogger("httpx")
        handlers, level, httpx_level = root.handlers[:], root.level, httpx_logger.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)
        httpx_logger.setLevel(httpx_level)
        structlog.contextvars.clear_contextvars()
        structlog.reset_defaults()

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("TASKMASTER_LOG_LEVEL", "warning")
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_debug_overrides_level(self, monkeypatch):
        monkeypatch.setenv("TASKMASTER_LOG_LEVEL", "ERROR")
        setup_logging(debug=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("TASKMASTER_LOG_LEVEL", "loud")
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_json_format(self, monkeypatch):
        monkeypatch.setenv("TASKMASTER_LOG_FORMAT", "JSON")
        setup_logging()
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_command_bound_to_every_record(self):
        """当前命令写入 contextvars，每条日志都带 command 字段"""
        setup_logging(command="fix-dependencies")
        assert structlog.contextvars.get_contextvars() == {"command": "fix-dependencies"}

        setup_logging()
        assert structlog.contextvars.get_contextvars() == {}
