"""
并发请求合并

同一个键同时只允许一个在途请求，其余调用方等待同一个结果。
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Tuple

from loguru import logger


class RequestCoalescer:
    """
    按键合并在途请求

    在途任务表以 (事件循环, 键) 为索引，不会跨事件循环共享任务。
    任务完成后立即从表中移除，因此只合并“同时”发生的请求，不缓存结果。
    """

    def __init__(self, name: str = "coalescer"):
        self.name = name
        self._tasks: Dict[Tuple[int, str], asyncio.Task] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        执行或加入 key 对应的在途请求

        Args:
            key: 请求键
            factory: 无参协程函数，仅在没有在途请求时调用

        Returns:
            请求结果（异常会传播给所有等待者）
        """
        loop = asyncio.get_running_loop()
        slot = (id(loop), key)

        task = self._tasks.get(slot)
        if task is None or task.done():
            task = loop.create_task(factory())
            self._tasks[slot] = task
            task.add_done_callback(lambda t, s=slot: self._release(s, t))
        else:
            logger.debug(f"[{self.name}] 合并在途请求: {key}")

        # shield: 单个等待者被取消时不影响其他等待者
        return await asyncio.shield(task)

    def _release(self, slot: Tuple[int, str], task: asyncio.Task) -> None:
        if self._tasks.get(slot) is task:
            del self._tasks[slot]
        # 所有等待者都被取消时，避免 “exception was never retrieved” 警告
        if not task.cancelled():
            task.exception()

    @property
    def in_flight(self) -> int:
        """当前在途请求数"""
        return len(self._tasks)
