"""DependencyService -- 读取任务文档 -> 依赖图操作 -> 仅在变更时写回"""

import structlog
from taskmaster.core.graph import DependencyGraph, Diagnostic, FixSummary
from taskmaster.core.models import TaskRef
from taskmaster.core.store import TaskDocumentStore

log = structlog.get_logger()


class DependencyService:
    """依赖管理业务服务"""

    def __init__(self, store: TaskDocumentStore) -> None:
        self._store = store

    def add_dependency(self, ref: TaskRef | int | str, depends_on: TaskRef | int | str) -> bool:
        """添加依赖；NotFoundError / SelfReferenceError / CycleError 时不写回"""
        document = self._store.load()
        added = DependencyGraph(document.tasks).add_dependency(ref, depends_on)
        if added:
            self._store.save(document)
        return added

    def remove_dependency(self, ref: TaskRef | int | str, depends_on: TaskRef | int | str) -> bool:
        """删除依赖；边不存在时不写回"""
        document = self._store.load()
        removed = DependencyGraph(document.tasks).remove_dependency(ref, depends_on)
        if removed:
            self._store.save(document)
        return removed

    def validate_dependencies(self) -> list[Diagnostic]:
        """只读检查"""
        document = self._store.load()
        diagnostics = DependencyGraph(document.tasks).validate()
        log.info("dependencies_validated", issues=len(diagnostics))
        return diagnostics

    def fix_dependencies(self) -> FixSummary:
        """修复依赖图，有变更时写回"""
        document = self._store.load()
        summary = DependencyGraph(document.tasks).fix()
        if summary.changed:
            self._store.save(document)
        return summary
