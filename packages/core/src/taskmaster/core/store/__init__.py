"""taskmaster Core Store -- 任务文档持久化

提供工厂函数按配置路径创建 Store。
"""

from pathlib import Path

from ..config import get_tasks_path
from .json_store import JsonTaskFileStore
from .protocols import TaskDocumentStore


def create_task_store(path: str | Path | None = None) -> JsonTaskFileStore:
    """创建任务文档 Store

    Args:
        path: 任务文档路径，缺省读取 TASKMASTER_TASKS_PATH

    Returns:
        JsonTaskFileStore 实例
    """
    return JsonTaskFileStore(path if path is not None else get_tasks_path())


__all__ = [
    "TaskDocumentStore",
    "JsonTaskFileStore",
    "create_task_store",
]
