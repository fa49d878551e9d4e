"""Core 异常体系

addDependency 抛出的 NotFoundError / SelfReferenceError / CycleError 只中止当次操作，
调用前后图状态完全一致。
"""

from .models.reference import TaskRef


class DependencyError(Exception):
    """依赖图操作基础异常"""


class NotFoundError(DependencyError):
    """引用无法解析为现有的 Task / Subtask"""

    def __init__(self, ref: "TaskRef | int | str") -> None:
        super().__init__(f"引用的任务不存在: {ref}")
        self.ref = ref


class SelfReferenceError(DependencyError):
    """任务不能依赖自身"""

    def __init__(self, ref: TaskRef) -> None:
        super().__init__(f"任务 {ref} 不能依赖自身")
        self.ref = ref


class CycleError(DependencyError):
    """新增依赖会形成环"""

    def __init__(self, ref: TaskRef, depends_on: TaskRef, path: list[TaskRef]) -> None:
        cycle = " -> ".join(str(r) for r in [ref, *path])
        super().__init__(f"添加依赖 {ref} -> {depends_on} 会形成环: {cycle}")
        self.ref = ref
        self.depends_on = depends_on
        self.path = path


class TaskFileNotFoundError(FileNotFoundError):
    """任务文档不存在"""

    def __init__(self, path: str) -> None:
        super().__init__(f"任务文件不存在: {path}，请先执行 parse-prd 生成任务")
        self.path = path


class TaskFileFormatError(ValueError):
    """任务文档内容无法解析"""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"任务文件格式错误: {path} ({reason})")
        self.path = path
