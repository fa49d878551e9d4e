"""枚举定义

包含 TaskStatus、TaskPriority 以及依赖图诊断/修复使用的 DependencyIssue。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task / Subtask 状态"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"


class TaskPriority(StrEnum):
    """Task 优先级"""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DependencyIssue(StrEnum):
    """依赖图问题类型

    validate() 产出悬空引用、自引用、循环与 ID 重复四种诊断；
    fix() 额外会因重复而删除边。
    """

    MISSING_REFERENCE = "missing_reference"
    SELF_REFERENCE = "self_reference"
    CYCLE = "cycle"
    DUPLICATE = "duplicate"
    DUPLICATE_ID = "duplicate_id"


def coerce_priority(value: object, default: TaskPriority = TaskPriority.MEDIUM) -> TaskPriority:
    """将任意输入转换为 TaskPriority，非法值返回 default"""
    try:
        return TaskPriority(str(value).strip().lower())
    except ValueError:
        return default
