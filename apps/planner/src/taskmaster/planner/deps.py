"""组合根 -- 显式创建共享的 HTTP 客户端、Gateway 与 Store 并注入服务

同一次调用内只创建一个 OllamaClient；测试可注入 transport / retry_policy /
provider_config 得到相互独立的配置。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import httpx
import structlog
from taskmaster.core.config import get_project_name
from taskmaster.core.store import JsonTaskFileStore, create_task_store
from taskmaster.provider import (
    DebugDumper,
    ModelGateway,
    OllamaClient,
    ProviderConfig,
    RetryPolicy,
    load_provider_config,
)

from .services.dependency_service import DependencyService
from .services.planner_service import PlannerService

log = structlog.get_logger()


@dataclass
class PlannerContext:
    """一次 CLI 调用内共享的组件"""

    provider_config: ProviderConfig
    client: OllamaClient
    gateway: ModelGateway
    store: JsonTaskFileStore
    planner: PlannerService
    dependencies: DependencyService

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "PlannerContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_planner_context(
    *,
    provider_config: ProviderConfig | None = None,
    tasks_path: str | Path | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    retry_policy: RetryPolicy | None = None,
    progress_stream: TextIO | None = None,
) -> PlannerContext:
    """创建 PlannerContext

    Args:
        provider_config: Provider 配置，None 时从环境变量加载
        tasks_path: 任务文档路径，None 时读取 TASKMASTER_TASKS_PATH
        transport: 自定义 HTTP 传输层（测试注入 httpx.MockTransport）
        retry_policy: 重试策略（测试注入不真正等待的 sleep）
        progress_stream: 进度指示输出目标
    """
    config = provider_config or load_provider_config()
    client = OllamaClient(
        base_url=config.api_base_url,
        timeout_s=config.timeout_s,
        transport=transport,
    )
    gateway = ModelGateway.from_config(
        config,
        client,
        progress_stream=progress_stream,
        retry_policy=retry_policy,
    )
    store = create_task_store(tasks_path)
    planner = PlannerService(
        gateway,
        store,
        dumper=DebugDumper(config.debug_dir, enabled=config.debug),
        project_name=get_project_name(),
    )

    log.debug(
        "planner_context_created",
        url=config.api_base_url,
        model=config.model,
        stream=config.stream,
        tasks_path=str(store.path),
    )
    return PlannerContext(
        provider_config=config,
        client=client,
        gateway=gateway,
        store=store,
        planner=planner,
        dependencies=DependencyService(store),
    )
