"""一秒节拍源，由调度循环按时间戳轮询驱动"""

from typing import Optional


class SecondTicker:
    """
    可取消的周期节拍。

    start() 记录起点，poll(now) 返回自上次以来到期的节拍数；
    cancel() 后 poll 恒为 0，直到再次 start()。
    """

    def __init__(self, period: float = 1.0):
        if period <= 0:
            raise ValueError("节拍周期必须为正数")
        self.period = period
        self._next_due: Optional[float] = None

    @property
    def active(self) -> bool:
        return self._next_due is not None

    def start(self, now: float):
        """(重新)启动节拍，首个节拍在 now + period 到期"""
        self._next_due = now + self.period

    def cancel(self):
        self._next_due = None

    def poll(self, now: float) -> int:
        if self._next_due is None or now < self._next_due:
            return 0
        due = int((now - self._next_due) // self.period) + 1
        self._next_due += due * self.period
        return due
