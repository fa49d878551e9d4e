"""Task/Subtask Normalizer -- 规范化新抽取出的记录

只作用于成功解析（直接解析或切片解析）得到的记录；
降级生成的占位记录在构造时即已规范。

- Subtask ID 按原顺序重排为从 start_id 开始的连续序列，纠正时记录 warning
- 依赖列表中数字形态的字符串转为整数，缺失或格式错误的依赖字段视为空
- 新生成记录的状态一律置为 pending
- 每个 Subtask 标记 parentTaskId
"""

from datetime import UTC, datetime

import structlog

from .models import (
    Subtask,
    Task,
    TaskDocument,
    TaskMetadata,
    TaskRef,
    TaskStatus,
    coerce_priority,
)

log = structlog.get_logger()


def _text(value: object) -> str:
    """将任意字段值转为文本，列表按行拼接"""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "\n".join(_text(item) for item in value)
    return str(value)


def coerce_dependencies(value: object) -> list[int | str]:
    """规范化依赖字段

    - 非列表（缺失、null、字符串等）-> []
    - 整数与数字形态的字符串 -> 整数
    - "parent.local" 形式 -> 规范化后的字符串
    - 其他条目丢弃；保持首次出现顺序去重
    """
    if not isinstance(value, list):
        return []

    result: list[int | str] = []
    seen: set[TaskRef] = set()
    for item in value:
        ref = TaskRef.try_parse(item)
        if ref is None:
            log.debug("dependency_entry_dropped", value=repr(item))
            continue
        if ref in seen:
            continue
        seen.add(ref)
        result.append(ref.to_dependency())
    return result


def _coerce_id(value: object) -> int | None:
    ref = TaskRef.try_parse(value)
    if ref is None or ref.is_subtask:
        return None
    return ref.task_id


def normalize_subtasks(
    records: list[dict],
    start_id: int,
    parent_task_id: int,
) -> list[Subtask]:
    """规范化新生成的 Subtask 记录

    Args:
        records: 抽取得到的原始记录（按模型返回顺序）
        start_id: 第一个 Subtask 应得的 ID
        parent_task_id: 父 Task ID

    Returns:
        ID 连续、状态为 pending、带 parentTaskId 的 Subtask 列表
    """
    subtasks: list[Subtask] = []
    for index, record in enumerate(records):
        subtask_id = start_id + index
        returned_id = record.get("id")
        if _coerce_id(returned_id) != subtask_id:
            log.warning(
                "subtask_id_corrected",
                parent_task_id=parent_task_id,
                from_id=returned_id,
                to_id=subtask_id,
            )
        subtasks.append(
            Subtask(
                id=subtask_id,
                title=_text(record.get("title")) or f"Subtask {subtask_id}",
                description=_text(record.get("description")),
                dependencies=coerce_dependencies(record.get("dependencies")),
                status=TaskStatus.PENDING,
                details=_text(record.get("details")),
                parent_task_id=parent_task_id,
            )
        )
    return subtasks


def normalize_tasks(records: list[dict]) -> list[Task]:
    """规范化新生成的顶层 Task 记录

    ID 保留模型给出的正整数；缺失、非法或重复时顺延分配并记录 warning。
    """
    tasks: list[Task] = []
    used_ids: set[int] = set()
    for record in records:
        task_id = _coerce_id(record.get("id"))
        if task_id is None or task_id in used_ids:
            assigned = max(used_ids, default=0) + 1
            log.warning("task_id_reassigned", from_id=record.get("id"), to_id=assigned)
            task_id = assigned
        used_ids.add(task_id)

        raw_subtasks = record.get("subtasks")
        subtask_records = (
            [r for r in raw_subtasks if isinstance(r, dict)]
            if isinstance(raw_subtasks, list)
            else []
        )

        tasks.append(
            Task(
                id=task_id,
                title=_text(record.get("title")) or f"Task {task_id}",
                description=_text(record.get("description")),
                status=TaskStatus.PENDING,
                dependencies=coerce_dependencies(record.get("dependencies")),
                priority=coerce_priority(record.get("priority")),
                details=_text(record.get("details")),
                test_strategy=_text(record.get("testStrategy")),
                subtasks=normalize_subtasks(subtask_records, 1, task_id),
            )
        )
    return tasks


def today() -> str:
    """当前 UTC 日期（YYYY-MM-DD）"""
    return datetime.now(UTC).date().isoformat()


def normalize_document(
    raw: dict,
    *,
    source_file: str,
    project_name: str,
) -> TaskDocument:
    """规范化整份任务文档，补全 metadata"""
    records = [r for r in raw.get("tasks", []) if isinstance(r, dict)]
    tasks = normalize_tasks(records)

    raw_metadata = raw.get("metadata")
    raw_metadata = raw_metadata if isinstance(raw_metadata, dict) else {}
    note = raw_metadata.get("note")

    metadata = TaskMetadata(
        project_name=project_name,
        total_tasks=len(tasks),
        source_file=source_file,
        generated_at=today(),
        note=_text(note) if note else None,
    )
    return TaskDocument(tasks=tasks, metadata=metadata)
