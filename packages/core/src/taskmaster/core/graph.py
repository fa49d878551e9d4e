"""Dependency Graph Manager -- 维护 Task/Subtask 依赖图的引用完整性与无环性

图的节点是全部 Task 与 Subtask（以 TaskRef 标识），边 A -> B 表示
"A 依赖 B"，即 B 完成前 A 不能开始。

- add_dependency / remove_dependency：单条边的增删，失败时状态不变
- validate()：只读扫描，产出诊断列表
- fix()：确定性修复，返回被删除的边与被重排的 Subtask ID

遍历顺序固定：实体按 (task_id, subtask_id) 升序，邻居同样升序。
DFS 使用显式栈实现，不受递归深度限制。
"""

from dataclasses import dataclass, field

import structlog

from .exceptions import CycleError, NotFoundError, SelfReferenceError
from .models import DependencyIssue, Subtask, Task, TaskRef

log = structlog.get_logger()

Entity = Task | Subtask


@dataclass(frozen=True)
class Diagnostic:
    """validate() 产出的单条诊断"""

    issue: DependencyIssue
    ref: TaskRef
    target: int | str | None = None
    cycle: tuple[TaskRef, ...] = ()

    def describe(self) -> str:
        if self.issue == DependencyIssue.MISSING_REFERENCE:
            return f"任务 {self.ref} 依赖不存在的任务 {self.target}"
        if self.issue == DependencyIssue.SELF_REFERENCE:
            return f"任务 {self.ref} 依赖自身"
        if self.issue == DependencyIssue.DUPLICATE_ID:
            return f"任务 ID {self.ref} 重复出现"
        path = " -> ".join(str(r) for r in [*self.cycle, self.cycle[0]])
        return f"检测到循环依赖: {path}"


@dataclass(frozen=True)
class RemovedEdge:
    """fix() 删除的一条边"""

    ref: TaskRef
    target: int | str
    reason: DependencyIssue


@dataclass(frozen=True)
class RenumberedSubtask:
    """fix() 重排的一个 Subtask ID"""

    task_id: int
    from_id: int
    to_id: int


@dataclass(frozen=True)
class ReassignedTask:
    """fix() 为重复的顶层 Task 分配的新 ID"""

    from_id: int
    to_id: int


@dataclass
class FixSummary:
    removed: list[RemovedEdge] = field(default_factory=list)
    renumbered: list[RenumberedSubtask] = field(default_factory=list)
    reassigned: list[ReassignedTask] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed or self.renumbered or self.reassigned)


@dataclass(frozen=True)
class _BackEdge:
    source: TaskRef
    target: TaskRef
    cycle: tuple[TaskRef, ...]


def _canonical_cycle(cycle: tuple[TaskRef, ...]) -> tuple[TaskRef, ...]:
    """旋转环使最小节点位于首位，用于去重"""
    start = min(range(len(cycle)), key=lambda i: cycle[i].sort_key())
    return cycle[start:] + cycle[:start]


class DependencyGraph:
    """依赖图管理器

    直接在传入的 Task 列表上原地修改，调用方负责持久化。
    """

    def __init__(self, tasks: list[Task]) -> None:
        self._tasks = tasks

    @property
    def tasks(self) -> list[Task]:
        return self._tasks

    # ============================================================
    # 实体与边
    # ============================================================

    def _entity_pairs(self) -> list[tuple[TaskRef, Entity]]:
        """全部实体（含 ID 重复者），按 (task_id, subtask_id) 升序，同 ID 保持列表顺序"""
        pairs: list[tuple[TaskRef, Entity]] = []
        for task in sorted(self._tasks, key=lambda t: t.id):
            pairs.append((TaskRef(task.id), task))
            for subtask in sorted(task.subtasks, key=lambda s: s.id):
                pairs.append((TaskRef(task.id, subtask.id), subtask))
        return pairs

    def _entities(self) -> dict[TaskRef, Entity]:
        """引用可解析到的实体；重复 ID 以首次出现为准"""
        entities: dict[TaskRef, Entity] = {}
        for ref, entity in self._entity_pairs():
            entities.setdefault(ref, entity)
        return entities

    def resolve(self, value: "TaskRef | int | str") -> tuple[TaskRef, Entity]:
        """将引用解析为现有实体

        Raises:
            NotFoundError: 引用格式非法或目标不存在
        """
        ref = TaskRef.try_parse(value)
        if ref is None:
            raise NotFoundError(value)
        entity = self._entities().get(ref)
        if entity is None:
            raise NotFoundError(ref)
        return ref, entity

    def _adjacency(self, entities: dict[TaskRef, Entity]) -> dict[TaskRef, list[TaskRef]]:
        """有效出边（排除悬空引用与自引用），邻居升序去重"""
        adjacency: dict[TaskRef, list[TaskRef]] = {}
        for ref, entity in entities.items():
            targets = {
                target
                for value in entity.dependencies
                if (target := TaskRef.try_parse(value)) is not None
                and target in entities
                and target != ref
            }
            adjacency[ref] = sorted(targets, key=TaskRef.sort_key)
        return adjacency

    def _find_path(
        self,
        adjacency: dict[TaskRef, list[TaskRef]],
        start: TaskRef,
        goal: TaskRef,
    ) -> list[TaskRef] | None:
        """沿出边从 start 搜索 goal，返回 start..goal 路径"""
        came_from: dict[TaskRef, TaskRef | None] = {start: None}
        stack = [start]
        while stack:
            node = stack.pop()
            if node == goal:
                path = [node]
                while (prev := came_from[path[-1]]) is not None:
                    path.append(prev)
                return path[::-1]
            for neighbour in reversed(adjacency.get(node, [])):
                if neighbour not in came_from:
                    came_from[neighbour] = node
                    stack.append(neighbour)
        return None

    def _back_edges(self, adjacency: dict[TaskRef, list[TaskRef]]) -> list[_BackEdge]:
        """升序 DFS，按发现顺序返回所有回边及其闭合的环"""
        on_stack: set[TaskRef] = set()
        visited: set[TaskRef] = set()
        back_edges: list[_BackEdge] = []

        for root in adjacency:
            if root in visited:
                continue
            visited.add(root)
            on_stack.add(root)
            path = [root]
            frames = [iter(adjacency[root])]
            while frames:
                neighbour = next(frames[-1], None)
                if neighbour is None:
                    frames.pop()
                    on_stack.discard(path.pop())
                    continue
                if neighbour in on_stack:
                    cycle = tuple(path[path.index(neighbour) :])
                    back_edges.append(_BackEdge(path[-1], neighbour, cycle))
                elif neighbour not in visited:
                    visited.add(neighbour)
                    on_stack.add(neighbour)
                    path.append(neighbour)
                    frames.append(iter(adjacency[neighbour]))
        return back_edges

    # ============================================================
    # 单边操作
    # ============================================================

    def add_dependency(
        self,
        ref: "TaskRef | int | str",
        depends_on: "TaskRef | int | str",
    ) -> bool:
        """添加依赖边 ref -> depends_on

        Returns:
            True 表示新增了边；边已存在时返回 False（无操作）

        Raises:
            NotFoundError: 任一引用无法解析
            SelfReferenceError: ref 与 depends_on 相同
            CycleError: 新边会形成环
        """
        source, entity = self.resolve(ref)
        target, _ = self.resolve(depends_on)

        if source == target:
            raise SelfReferenceError(source)

        if any(TaskRef.try_parse(value) == target for value in entity.dependencies):
            log.info("dependency_already_exists", ref=str(source), depends_on=str(target))
            return False

        entities = self._entities()
        path = self._find_path(self._adjacency(entities), target, source)
        if path is not None:
            raise CycleError(source, target, path)

        entity.dependencies.append(target.to_dependency())
        log.info("dependency_added", ref=str(source), depends_on=str(target))
        return True

    def remove_dependency(
        self,
        ref: "TaskRef | int | str",
        depends_on: "TaskRef | int | str",
    ) -> bool:
        """删除依赖边 ref -> depends_on

        目标可以是已不存在的实体（清理悬空边）。边不存在时记录 warning 并返回 False。

        Raises:
            NotFoundError: ref 无法解析，或 depends_on 不是合法引用
        """
        source, entity = self.resolve(ref)
        target = TaskRef.try_parse(depends_on)
        if target is None:
            raise NotFoundError(depends_on)

        kept = [value for value in entity.dependencies if TaskRef.try_parse(value) != target]
        if len(kept) == len(entity.dependencies):
            log.warning("dependency_not_found", ref=str(source), depends_on=str(target))
            return False

        entity.dependencies[:] = kept
        log.info("dependency_removed", ref=str(source), depends_on=str(target))
        return True

    # ============================================================
    # 整图检查与修复
    # ============================================================

    def validate(self) -> list[Diagnostic]:
        """只读扫描：ID 重复、悬空引用、自引用、循环（每个环只报告一次）

        ID 重复的实体同样检查其出边，避免问题被首次出现者遮蔽。
        """
        entities = self._entities()
        diagnostics: list[Diagnostic] = []

        seen_refs: set[TaskRef] = set()
        for ref, entity in self._entity_pairs():
            if ref in seen_refs:
                diagnostics.append(Diagnostic(DependencyIssue.DUPLICATE_ID, ref))
            seen_refs.add(ref)
            for value in entity.dependencies:
                target = TaskRef.try_parse(value)
                if target is None or target not in entities:
                    diagnostics.append(
                        Diagnostic(DependencyIssue.MISSING_REFERENCE, ref, target=value)
                    )
                elif target == ref:
                    diagnostics.append(Diagnostic(DependencyIssue.SELF_REFERENCE, ref, target=value))

        seen_cycles: set[tuple[TaskRef, ...]] = set()
        for edge in self._back_edges(self._adjacency(entities)):
            cycle = _canonical_cycle(edge.cycle)
            if cycle in seen_cycles:
                continue
            seen_cycles.add(cycle)
            diagnostics.append(
                Diagnostic(
                    DependencyIssue.CYCLE,
                    edge.source,
                    target=edge.target.to_dependency(),
                    cycle=cycle,
                )
            )

        for diagnostic in diagnostics:
            log.warning(
                "dependency_issue_found",
                issue=diagnostic.issue,
                ref=str(diagnostic.ref),
                target=diagnostic.target,
            )
        return diagnostics

    def fix(self) -> FixSummary:
        """确定性修复

        1. 重复的顶层 Task ID 按列表顺序改为当前最大 ID + 1（首次出现者保留原 ID）
        2. 删除悬空引用、自引用与重复边（保留首次出现顺序），ID 重复的 Subtask 也在检查之列
        3. 每个父 Task 下的 Subtask 按列表顺序重排为 1..n，并改写所有限定引用
        4. 反复执行升序 DFS，删除最后发现的回边，直到无环

        重排只改写指向现有 Subtask 的引用，第 2 步之后不会再出现无效边。
        """
        summary = FixSummary()
        self._reassign_duplicate_tasks(summary)
        self._drop_invalid_edges(summary)
        self._renumber_subtasks(summary)
        self._break_cycles(summary)

        if summary.changed:
            log.info(
                "dependencies_fixed",
                removed=len(summary.removed),
                renumbered=len(summary.renumbered),
                reassigned=len(summary.reassigned),
            )
        return summary

    def _reassign_duplicate_tasks(self, summary: FixSummary) -> None:
        used_ids: set[int] = set()
        next_id = max((task.id for task in self._tasks), default=0) + 1
        for task in self._tasks:
            if task.id not in used_ids:
                used_ids.add(task.id)
                continue
            old_id, task.id = task.id, next_id
            next_id += 1
            used_ids.add(task.id)
            for subtask in task.subtasks:
                subtask.parent_task_id = task.id
            summary.reassigned.append(ReassignedTask(old_id, task.id))
            log.warning("task_id_reassigned", from_id=old_id, to_id=task.id)

    def _drop_invalid_edges(self, summary: FixSummary) -> None:
        entities = self._entities()
        for ref, entity in self._entity_pairs():
            kept: list[int | str] = []
            seen: set[TaskRef] = set()
            for value in entity.dependencies:
                target = TaskRef.try_parse(value)
                if target is None or target not in entities:
                    reason = DependencyIssue.MISSING_REFERENCE
                elif target == ref:
                    reason = DependencyIssue.SELF_REFERENCE
                elif target in seen:
                    reason = DependencyIssue.DUPLICATE
                else:
                    seen.add(target)
                    kept.append(value)
                    continue
                summary.removed.append(RemovedEdge(ref, value, reason))
                log.warning("dependency_edge_removed", ref=str(ref), target=value, reason=reason)
            if len(kept) != len(entity.dependencies):
                entity.dependencies[:] = kept

    def _renumber_subtasks(self, summary: FixSummary) -> None:
        mapping: dict[TaskRef, TaskRef] = {}
        for task in self._tasks:
            old_ids: set[int] = set()
            for new_id, subtask in enumerate(task.subtasks, start=1):
                old_id = subtask.id
                if old_id == new_id:
                    old_ids.add(old_id)
                    continue
                if old_id not in old_ids:
                    mapping[TaskRef(task.id, old_id)] = TaskRef(task.id, new_id)
                old_ids.add(old_id)
                subtask.id = new_id
                summary.renumbered.append(RenumberedSubtask(task.id, old_id, new_id))
                log.warning("subtask_renumbered", task_id=task.id, from_id=old_id, to_id=new_id)

        if not mapping:
            return
        for task in self._tasks:
            for entity in [task, *task.subtasks]:
                entity.dependencies[:] = [
                    mapping[ref].to_dependency()
                    if (ref := TaskRef.try_parse(value)) in mapping
                    else value
                    for value in entity.dependencies
                ]

    def _break_cycles(self, summary: FixSummary) -> None:
        while True:
            entities = self._entities()
            back_edges = self._back_edges(self._adjacency(entities))
            if not back_edges:
                return
            edge = back_edges[-1]
            entity = entities[edge.source]
            removed = [v for v in entity.dependencies if TaskRef.try_parse(v) == edge.target]
            entity.dependencies[:] = [
                v for v in entity.dependencies if TaskRef.try_parse(v) != edge.target
            ]
            for value in removed:
                summary.removed.append(RemovedEdge(edge.source, value, DependencyIssue.CYCLE))
            log.warning(
                "cycle_edge_removed",
                ref=str(edge.source),
                target=str(edge.target),
                cycle=[str(r) for r in edge.cycle],
            )
