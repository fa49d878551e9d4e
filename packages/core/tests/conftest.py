"""packages/core 测试配置 -- 核心层 fixture"""

import pytest
from taskmaster.core.models import Subtask, Task


def _build_tasks(edges: dict[int, list], subtasks: dict[int, dict[int, list]] | None = None) -> list[Task]:
    """按 {task_id: [依赖...]} 与 {task_id: {subtask_id: [依赖...]}} 构造任务列表"""
    subtasks = subtasks or {}
    return [
        Task(
            id=task_id,
            title=f"Task {task_id}",
            dependencies=list(deps),
            subtasks=[
                Subtask(id=sub_id, title=f"Sub {task_id}.{sub_id}", dependencies=list(sub_deps))
                for sub_id, sub_deps in subtasks.get(task_id, {}).items()
            ],
        )
        for task_id, deps in edges.items()
    ]


@pytest.fixture
def build_tasks():
    """任务列表构造函数"""
    return _build_tasks


@pytest.fixture
def chain_tasks() -> list[Task]:
    """任务 {1,2,3}，边 2 -> 1、3 -> {1,2}"""
    return _build_tasks({1: [], 2: [1], 3: [1, 2]})
