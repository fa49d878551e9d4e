"""PlannerService -- 生成流水线

Gateway -> Response Normalizer -> Structured Extractor -> Task Normalizer，
产出的记录交给 DependencyGraph.fix() 修正后整份写回 Store。

解析问题永远不会抛给调用方（降级阶梯兜底）；Gateway 错误原样向上传播。
"""

from pathlib import Path

import structlog
from taskmaster.core.config import (
    DEFAULT_PROJECT_NAME,
    get_default_num_tasks,
    get_default_subtasks,
)
from taskmaster.core.exceptions import NotFoundError
from taskmaster.core.extraction import extract_subtasks, extract_task_document
from taskmaster.core.graph import DependencyGraph
from taskmaster.core.models import Subtask, Task, TaskDocument
from taskmaster.core.store import TaskDocumentStore
from taskmaster.provider import (
    ConnectivityError,
    DebugDumper,
    ModelGateway,
    ModelNotFoundError,
    normalize_response,
)

from .prompts import build_prd_prompts, build_subtask_prompts

log = structlog.get_logger()

PRD_DEBUG_LABEL = "ollama"
SUBTASK_DEBUG_LABEL = "ollama_subtasks"


class PlannerService:
    """任务生成业务服务"""

    def __init__(
        self,
        gateway: ModelGateway,
        store: TaskDocumentStore,
        dumper: DebugDumper | None = None,
        project_name: str = DEFAULT_PROJECT_NAME,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._dumper = dumper or DebugDumper()
        self._project_name = project_name

    async def ensure_ready(self) -> None:
        """确认服务可达且模型已安装

        Raises:
            ConnectivityError: 服务不可达
            ModelNotFoundError: 模型未安装
        """
        client = self._gateway.client
        if not await client.health_check():
            raise ConnectivityError(client.base_url)
        if not await client.is_model_available(self._gateway.model):
            raise ModelNotFoundError(self._gateway.model)
        log.info("planner_ready", url=client.base_url, model=self._gateway.model)

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        debug_label: str,
        progress_label: str,
    ) -> str:
        """调用 Gateway 并修复转义，调试模式下落盘三份文本"""
        result = await self._gateway.generate(
            system_prompt,
            user_prompt,
            progress_label=progress_label,
        )
        processed = normalize_response(result.content)
        self._dumper.dump(
            debug_label,
            raw=result.raw,
            accumulated=result.content,
            processed=processed,
        )
        return processed

    async def parse_prd(
        self,
        prd_path: str | Path,
        num_tasks: int | None = None,
    ) -> TaskDocument:
        """将 PRD 拆解为任务文档并写回 Store

        Raises:
            FileNotFoundError: PRD 文件不存在
            GatewayError: 生成服务调用失败
        """
        num_tasks = num_tasks or get_default_num_tasks()
        prd_text = Path(prd_path).read_text(encoding="utf-8")
        log.info("prd_parse_started", prd_path=str(prd_path), num_tasks=num_tasks)

        await self.ensure_ready()
        system_prompt, user_prompt = build_prd_prompts(prd_text, str(prd_path), num_tasks)
        text = await self._complete(
            system_prompt,
            user_prompt,
            debug_label=PRD_DEBUG_LABEL,
            progress_label="Generating tasks from PRD",
        )

        extraction = extract_task_document(
            text,
            num_tasks,
            source_file=str(prd_path),
            project_name=self._project_name,
        )
        document = extraction.document
        DependencyGraph(document.tasks).fix()
        self._store.save(document)

        log.info(
            "prd_parsed",
            prd_path=str(prd_path),
            stage=extraction.stage,
            tasks=len(document.tasks),
        )
        return document

    async def generate_subtasks(
        self,
        task: Task,
        num_subtasks: int,
        next_subtask_id: int,
        additional_context: str = "",
    ) -> list[Subtask]:
        """为 task 生成 num_subtasks 个 Subtask，ID 从 next_subtask_id 开始

        Returns:
            规范化后的 Subtask 列表（解析失败时为占位记录）
        """
        system_prompt, user_prompt = build_subtask_prompts(
            task,
            num_subtasks,
            next_subtask_id,
            additional_context,
        )
        text = await self._complete(
            system_prompt,
            user_prompt,
            debug_label=SUBTASK_DEBUG_LABEL,
            progress_label=f"Generating {num_subtasks} subtasks for task {task.id}",
        )
        extraction = extract_subtasks(
            text,
            num_subtasks,
            start_id=next_subtask_id,
            parent_task_id=task.id,
        )
        return extraction.subtasks

    async def expand_task(
        self,
        task_id: int,
        num_subtasks: int | None = None,
        additional_context: str = "",
    ) -> list[Subtask]:
        """展开已有 Task：追加新 Subtask、修正依赖图并写回

        Raises:
            TaskFileNotFoundError: 任务文档不存在
            NotFoundError: task_id 不存在
            GatewayError: 生成服务调用失败
        """
        num_subtasks = num_subtasks or get_default_subtasks()
        document = self._store.load()
        task = document.find_task(task_id)
        if task is None:
            raise NotFoundError(task_id)

        subtasks = await self.generate_subtasks(
            task,
            num_subtasks,
            task.next_subtask_id(),
            additional_context,
        )
        task.subtasks.extend(subtasks)
        DependencyGraph(document.tasks).fix()
        self._store.save(document)

        log.info("task_expanded", task_id=task_id, added=len(subtasks))
        return subtasks
