"""taskmaster Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    DependencyIssue,
    TaskPriority,
    TaskStatus,
    coerce_priority,
)
from .reference import TaskRef
from .task import Subtask, Task, TaskDocument, TaskMetadata

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "DependencyIssue",
    "coerce_priority",
    # 引用
    "TaskRef",
    # Task
    "Task",
    "Subtask",
    "TaskDocument",
    "TaskMetadata",
]
