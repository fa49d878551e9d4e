"""CLI 入口模块 -- python -m taskmaster.planner <command>

支持的命令：
  parse-prd <prd> [num]                  从 PRD 生成任务文档
  expand <task_id> [num] [context]       为任务生成子任务
  add-dependency <id> <depends_on>       添加依赖
  remove-dependency <id> <depends_on>    删除依赖
  validate-dependencies                  检查依赖图
  fix-dependencies                       修复依赖图
"""

import asyncio
import sys

from taskmaster.core.exceptions import (
    DependencyError,
    TaskFileFormatError,
    TaskFileNotFoundError,
)
from taskmaster.provider import GatewayError, ProviderConfig, load_provider_config

from .deps import PlannerContext, create_planner_context
from .logging_config import setup_logging

USAGE = """\
用法: python -m taskmaster.planner <command> [args]
命令:
  parse-prd <prd> [num]                  从 PRD 生成任务文档
  expand <task_id> [num] [context]       为任务生成子任务
  add-dependency <id> <depends_on>       添加依赖
  remove-dependency <id> <depends_on>    删除依赖
  validate-dependencies                  检查依赖图
  fix-dependencies                       修复依赖图"""


def _usage_error(message: str | None = None) -> None:
    if message:
        print(message)
    print(USAGE)
    sys.exit(1)


def _int_arg(args: list[str], index: int, name: str) -> int | None:
    if len(args) <= index:
        return None
    try:
        value = int(args[index])
    except ValueError:
        value = 0
    if value < 1:
        _usage_error(f"{name} 必须是正整数: {args[index]}")
    return value


async def parse_prd(ctx: PlannerContext, args: list[str]) -> None:
    """执行 parse-prd"""
    if not args:
        _usage_error("缺少 PRD 文件路径")
    document = await ctx.planner.parse_prd(args[0], _int_arg(args, 1, "num"))
    print(f"已生成 {len(document.tasks)} 个任务，写入 {ctx.store.path}")
    if document.metadata.note:
        print(f"注意: {document.metadata.note}")


async def expand(ctx: PlannerContext, args: list[str]) -> None:
    """执行 expand"""
    task_id = _int_arg(args, 0, "task_id")
    if task_id is None:
        _usage_error("缺少任务 ID")
    context = " ".join(args[2:])
    subtasks = await ctx.planner.expand_task(task_id, _int_arg(args, 1, "num"), context)
    print(f"任务 {task_id} 新增 {len(subtasks)} 个子任务")
    for subtask in subtasks:
        print(f"  {task_id}.{subtask.id} {subtask.title}")


def add_dependency(ctx: PlannerContext, args: list[str]) -> None:
    """执行 add-dependency"""
    if len(args) < 2:
        _usage_error("需要 <id> <depends_on> 两个参数")
    if ctx.dependencies.add_dependency(args[0], args[1]):
        print(f"已添加依赖: {args[0]} -> {args[1]}")
    else:
        print(f"依赖已存在: {args[0]} -> {args[1]}")


def remove_dependency(ctx: PlannerContext, args: list[str]) -> None:
    """执行 remove-dependency"""
    if len(args) < 2:
        _usage_error("需要 <id> <depends_on> 两个参数")
    if ctx.dependencies.remove_dependency(args[0], args[1]):
        print(f"已删除依赖: {args[0]} -> {args[1]}")
    else:
        print(f"依赖不存在: {args[0]} -> {args[1]}")


def validate_dependencies(ctx: PlannerContext, args: list[str]) -> None:
    """执行 validate-dependencies"""
    diagnostics = ctx.dependencies.validate_dependencies()
    if not diagnostics:
        print("依赖图检查通过")
        return
    print(f"发现 {len(diagnostics)} 个依赖问题:")
    for diagnostic in diagnostics:
        print(f"  [{diagnostic.issue}] {diagnostic.describe()}")


def fix_dependencies(ctx: PlannerContext, args: list[str]) -> None:
    """执行 fix-dependencies"""
    summary = ctx.dependencies.fix_dependencies()
    if not summary.changed:
        print("依赖图无需修复")
        return
    for item in summary.reassigned:
        print(f"  重复的任务 {item.from_id} 改为任务 {item.to_id}")
    for edge in summary.removed:
        print(f"  删除 {edge.ref} -> {edge.target} ({edge.reason})")
    for item in summary.renumbered:
        print(f"  子任务 {item.task_id}.{item.from_id} 重编号为 {item.task_id}.{item.to_id}")
    print(
        f"已修复: 删除 {len(summary.removed)} 条边，"
        f"重编号 {len(summary.renumbered)} 个子任务，"
        f"重新分配 {len(summary.reassigned)} 个任务 ID"
    )


ASYNC_COMMANDS = {
    "parse-prd": parse_prd,
    "expand": expand,
}

SYNC_COMMANDS = {
    "add-dependency": add_dependency,
    "remove-dependency": remove_dependency,
    "validate-dependencies": validate_dependencies,
    "fix-dependencies": fix_dependencies,
}


async def run(command: str, args: list[str], config: ProviderConfig) -> None:
    """在组合根内执行单条命令"""
    async with create_planner_context(provider_config=config, progress_stream=sys.stderr) as ctx:
        if command in ASYNC_COMMANDS:
            await ASYNC_COMMANDS[command](ctx, args)
        else:
            SYNC_COMMANDS[command](ctx, args)


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        _usage_error()

    command, args = sys.argv[1], sys.argv[2:]
    if command not in ASYNC_COMMANDS and command not in SYNC_COMMANDS:
        _usage_error(f"未知命令: {command}")

    config = load_provider_config()
    setup_logging(debug=config.debug, command=command)

    try:
        asyncio.run(run(command, args, config))
    except (
        GatewayError,
        DependencyError,
        TaskFileNotFoundError,
        TaskFileFormatError,
        FileNotFoundError,
    ) as e:
        print(f"错误: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
