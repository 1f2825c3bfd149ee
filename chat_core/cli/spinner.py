"""等待指示器。

请求发出后在终端显示 spinner，由独立的 asyncio 任务按固定间隔刷新；
收到响应头或请求失败时必须显式 stop()，stop 会取消任务并清除显示。
"""

import asyncio
from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner


class ThinkingIndicator:
    def __init__(self, console: Console, message: str = "AI is thinking...", interval: float = 0.1):
        self._console = console
        self._message = message
        self._interval = interval
        self._live: Optional[Live] = None
        self._task: Optional["asyncio.Task[None]"] = None

    def start(self) -> None:
        if self._task is not None:
            return
        self._live = Live(
            Spinner("dots", text=self._message, style="cyan"),
            console=self._console,
            transient=True,
            auto_refresh=False,
        )
        self._live.start()
        self._task = asyncio.create_task(self._tick())

    async def stop(self) -> None:
        """停止刷新并清除 spinner，未启动时什么也不做。"""

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        live, self._live = self._live, None
        if live is not None:
            live.stop()

    async def _tick(self) -> None:
        while True:
            if self._live is not None:
                self._live.refresh()
            await asyncio.sleep(self._interval)
