"""Store Protocol 接口定义

使用 Python Protocol 实现结构化子类型（duck typing），
服务层只依赖此接口，测试可替换为内存实现。
"""

from typing import Protocol

from ..models.task import TaskDocument


class TaskDocumentStore(Protocol):
    """任务文档存储接口 -- 整份读取、整份写回"""

    def exists(self) -> bool:
        """任务文档是否存在"""
        ...

    def load(self) -> TaskDocument:
        """读取任务文档

        Raises:
            TaskFileNotFoundError: 文档不存在
        """
        ...

    def save(self, document: TaskDocument) -> None:
        """原子写回任务文档"""
        ...
