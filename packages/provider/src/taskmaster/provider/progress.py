"""ProgressIndicator -- 生成期间的进度指示

按固定间隔刷新，与响应片段的到达节奏无关；只写终端，不触碰任务数据。
"""

import asyncio
import contextlib
from typing import TextIO

import structlog

log = structlog.get_logger()


class ProgressIndicator:
    """定时刷新的省略号进度提示

    用法::

        async with ProgressIndicator("Generating tasks from PRD", stream=sys.stderr):
            await gateway_call()
    """

    def __init__(
        self,
        label: str,
        interval_s: float = 0.5,
        stream: TextIO | None = None,
    ) -> None:
        """
        Args:
            label: 提示文字
            interval_s: 刷新间隔（秒）
            stream: 输出目标，None 时只计数不输出
        """
        self._label = label
        self._interval_s = interval_s
        self._stream = stream
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _render(self) -> None:
        if self._stream is None:
            return
        dots = "." * (self.ticks % 4)
        self._stream.write(f"\r{self._label}{dots:<3}")
        self._stream.flush()

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            self.ticks += 1
            self._render()

    def start(self) -> None:
        """启动刷新任务"""
        if self.running:
            return
        self._render()
        self._task = asyncio.create_task(self._tick_loop())
        log.debug("progress_started", label=self._label)

    async def stop(self) -> None:
        """停止刷新任务并换行"""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        if self._stream is not None:
            self._stream.write("\n")
            self._stream.flush()
        log.debug("progress_stopped", label=self._label, ticks=self.ticks)

    async def __aenter__(self) -> "ProgressIndicator":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
