"""TaskRef -- 依赖引用

两种写法：
- 裸整数 5        -> 顶层 Task 5
- 限定串 "5.2"    -> Task 5 下的 Subtask 2

数字形态的字符串 "5" 等价于 5。
"""

import re
from dataclasses import dataclass

_QUALIFIED_RE = re.compile(r"^\s*(\d+)\s*\.\s*(\d+)\s*$")
_BARE_RE = re.compile(r"^\s*(\d+)\s*$")


@dataclass(frozen=True)
class TaskRef:
    """Task 或 Subtask 的引用，Subtask 的身份是 (task_id, subtask_id) 二元组"""

    task_id: int
    subtask_id: int | None = None

    @classmethod
    def parse(cls, value: "int | str | TaskRef") -> "TaskRef":
        """解析依赖值

        Raises:
            ValueError: 既不是正整数也不是 "parent.local" 形式
        """
        if isinstance(value, TaskRef):
            return value
        if isinstance(value, bool):
            raise ValueError(f"无法解析的引用: {value!r}")
        if isinstance(value, int):
            if value < 1:
                raise ValueError(f"无法解析的引用: {value!r}")
            return cls(value)
        if isinstance(value, str):
            if match := _BARE_RE.match(value):
                return cls.parse(int(match.group(1)))
            if match := _QUALIFIED_RE.match(value):
                task_id, subtask_id = int(match.group(1)), int(match.group(2))
                if task_id >= 1 and subtask_id >= 1:
                    return cls(task_id, subtask_id)
        raise ValueError(f"无法解析的引用: {value!r}")

    @classmethod
    def try_parse(cls, value: object) -> "TaskRef | None":
        """解析失败时返回 None"""
        try:
            return cls.parse(value)  # type: ignore[arg-type]
        except ValueError:
            return None

    @property
    def is_subtask(self) -> bool:
        return self.subtask_id is not None

    def sort_key(self) -> tuple[int, int]:
        """升序遍历用的排序键，Task 排在其 Subtask 之前"""
        return (self.task_id, self.subtask_id or 0)

    def to_dependency(self) -> int | str:
        """序列化为依赖列表中的值：Task 为整数，Subtask 为 "parent.local" """
        if self.subtask_id is None:
            return self.task_id
        return str(self)

    def __str__(self) -> str:
        if self.subtask_id is None:
            return str(self.task_id)
        return f"{self.task_id}.{self.subtask_id}"
