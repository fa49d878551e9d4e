"""配置常量模块 -- 可通过环境变量覆盖

包含任务文件路径、项目名称、默认生成数量等可配置项。
"""

import os
from pathlib import Path

import structlog

log = structlog.get_logger()

DEFAULT_PROJECT_NAME = "Task Master Project"


def get_tasks_path() -> Path:
    """获取任务文档路径"""
    return Path(os.environ.get("TASKMASTER_TASKS_PATH", "tasks/tasks.json"))


def get_project_name() -> str:
    """获取项目名称（写入任务文档 metadata）"""
    return os.environ.get("PROJECT_NAME") or DEFAULT_PROJECT_NAME


def _positive_int_env(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1:
        log.warning("invalid_count_config", env_var=env_var, value=raw, fallback=default)
        return default
    return value


def get_default_num_tasks() -> int:
    """parse-prd 默认生成的任务数"""
    return _positive_int_env("DEFAULT_NUM_TASKS", 10)


def get_default_subtasks() -> int:
    """expand 默认生成的子任务数"""
    return _positive_int_env("DEFAULT_SUBTASKS", 3)
