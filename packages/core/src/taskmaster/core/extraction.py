"""Structured Extractor -- 从生成文本中抽取结构化记录

降级阶梯，首个成功的阶段生效：
1. 直接解析整段文本
2. 截取第一个左括号到最后一个对应右括号之间的子串再解析
3. 合成恰好 N 条占位记录，每条都带 FALLBACK_MARKER 标注

本模块从不向调用方抛出异常；第 3 步无条件成功。
第 1、2 步解析出的记录数与期望不符时只记录 warning，结果原样返回。
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from .models import Subtask, Task, TaskDocument, TaskMetadata, TaskPriority, TaskStatus
from .normalize import normalize_document, normalize_subtasks, today

log = structlog.get_logger()

T = TypeVar("T")

FALLBACK_MARKER = "auto-generated due to parsing failure"
FALLBACK_NOTE = "Tasks were generated as fallbacks due to AI response parsing issues."


class ExtractionStage(StrEnum):
    """命中的降级阶段"""

    DIRECT = "direct"
    SLICED = "sliced"
    FALLBACK = "fallback"


class ParseRecoverable(Exception):
    """内部异常：当前阶段解析失败，交给下一阶段处理"""


@dataclass
class DocumentExtraction:
    document: TaskDocument
    stage: ExtractionStage


@dataclass
class SubtaskExtraction:
    subtasks: list[Subtask]
    stage: ExtractionStage


def is_fallback_record(record: Task | Subtask) -> bool:
    """判断记录是否为解析失败时合成的占位记录"""
    return FALLBACK_MARKER in record.details


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseRecoverable(f"JSON 解析失败: {e}") from e
    except RecursionError as e:
        # 模型陷入重复输出时可能产生极深的括号嵌套
        raise ParseRecoverable("JSON 嵌套层级过深") from e


def _slice(text: str, opener: str, closer: str) -> str:
    start = text.find(opener)
    end = text.rfind(closer)
    if start < 0 or end < 0 or end <= start:
        raise ParseRecoverable(f"未找到成对的 {opener}{closer} 标记")
    return text[start : end + 1]


def _dict_records(items: list, kind: str) -> list[dict]:
    records = [item for item in items if isinstance(item, dict)]
    if len(records) != len(items):
        log.warning("non_object_records_dropped", kind=kind, dropped=len(items) - len(records))
    return records


def _run_ladder(
    text: str,
    opener: str,
    closer: str,
    build: Callable[[Any], T],
) -> tuple[ExtractionStage, T | None]:
    """执行第 1、2 步；均失败时返回 (FALLBACK, None)"""
    try:
        return ExtractionStage.DIRECT, build(_loads(text))
    except ParseRecoverable as e:
        log.debug("direct_parse_failed", error=str(e))

    try:
        return ExtractionStage.SLICED, build(_loads(_slice(text, opener, closer)))
    except ParseRecoverable as e:
        log.debug("sliced_parse_failed", error=str(e))

    return ExtractionStage.FALLBACK, None


# ============================================================
# 整份任务文档
# ============================================================


def build_fallback_document(
    num_tasks: int,
    *,
    source_file: str,
    project_name: str,
) -> TaskDocument:
    """合成 num_tasks 条占位 Task"""
    tasks = [
        Task(
            id=i,
            title=f"Task {i}",
            description=f"Auto-generated fallback task {i}",
            status=TaskStatus.PENDING,
            dependencies=[],
            priority=TaskPriority.MEDIUM,
            details=f"This task was {FALLBACK_MARKER} of the AI response.",
            test_strategy="Manual verification",
        )
        for i in range(1, num_tasks + 1)
    ]
    metadata = TaskMetadata(
        project_name=project_name,
        total_tasks=num_tasks,
        source_file=source_file,
        generated_at=today(),
        note=FALLBACK_NOTE,
    )
    return TaskDocument(tasks=tasks, metadata=metadata)


def extract_task_document(
    text: str,
    num_tasks: int,
    *,
    source_file: str,
    project_name: str,
) -> DocumentExtraction:
    """从生成文本中抽取 { tasks, metadata } 文档

    Args:
        text: 已修复转义的生成文本
        num_tasks: 期望的任务数（仅用于告警与占位合成）
        source_file: 来源 PRD 路径
        project_name: 项目名称
    """

    def build(parsed: Any) -> TaskDocument:
        if isinstance(parsed, list):
            parsed = {"tasks": parsed}
        if not isinstance(parsed, dict) or not isinstance(parsed.get("tasks"), list):
            raise ParseRecoverable("解析结果缺少 tasks 数组")
        parsed = {**parsed, "tasks": _dict_records(parsed["tasks"], "task")}
        try:
            return normalize_document(parsed, source_file=source_file, project_name=project_name)
        except ValidationError as e:
            raise ParseRecoverable(f"任务记录无法规范化: {e}") from e

    stage, document = _run_ladder(text, "{", "}", build)
    if document is None:
        log.warning("fallback_tasks_created", num_tasks=num_tasks, text_length=len(text))
        document = build_fallback_document(
            num_tasks,
            source_file=source_file,
            project_name=project_name,
        )
        return DocumentExtraction(document=document, stage=stage)

    if len(document.tasks) != num_tasks:
        log.warning("task_count_mismatch", expected=num_tasks, parsed=len(document.tasks))
    log.info("tasks_extracted", stage=stage, count=len(document.tasks))
    return DocumentExtraction(document=document, stage=stage)


# ============================================================
# Subtask 数组
# ============================================================


def build_fallback_subtasks(
    num_subtasks: int,
    *,
    start_id: int,
    parent_task_id: int,
) -> list[Subtask]:
    """合成 num_subtasks 条占位 Subtask，ID 从 start_id 连续递增"""
    return [
        Subtask(
            id=start_id + i,
            title=f"Subtask {start_id + i}",
            description="Auto-generated fallback subtask",
            dependencies=[],
            status=TaskStatus.PENDING,
            details=(
                f"This subtask was {FALLBACK_MARKER}. "
                "Please update with real details."
            ),
            parent_task_id=parent_task_id,
        )
        for i in range(num_subtasks)
    ]


def extract_subtasks(
    text: str,
    num_subtasks: int,
    *,
    start_id: int,
    parent_task_id: int,
) -> SubtaskExtraction:
    """从生成文本中抽取有序 Subtask 数组

    接受裸数组，或带 subtasks 数组字段的对象。
    """

    def build(parsed: Any) -> list[Subtask]:
        if isinstance(parsed, dict) and isinstance(parsed.get("subtasks"), list):
            parsed = parsed["subtasks"]
        if not isinstance(parsed, list):
            raise ParseRecoverable("解析结果不是数组")
        records = _dict_records(parsed, "subtask")
        try:
            return normalize_subtasks(records, start_id, parent_task_id)
        except ValidationError as e:
            raise ParseRecoverable(f"子任务记录无法规范化: {e}") from e

    stage, subtasks = _run_ladder(text, "[", "]", build)
    if subtasks is None:
        log.warning(
            "fallback_subtasks_created",
            parent_task_id=parent_task_id,
            num_subtasks=num_subtasks,
        )
        subtasks = build_fallback_subtasks(
            num_subtasks,
            start_id=start_id,
            parent_task_id=parent_task_id,
        )
        return SubtaskExtraction(subtasks=subtasks, stage=stage)

    if len(subtasks) != num_subtasks:
        log.warning(
            "subtask_count_mismatch",
            parent_task_id=parent_task_id,
            expected=num_subtasks,
            parsed=len(subtasks),
        )
    log.info("subtasks_extracted", parent_task_id=parent_task_id, stage=stage, count=len(subtasks))
    return SubtaskExtraction(subtasks=subtasks, stage=stage)
