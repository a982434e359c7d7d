"""Core local interruptor: machine timer and software interrupts."""

from __future__ import annotations

from collections.abc import Callable

from rvvp.defs import ClintInterface, ClintInterruptTarget
from rvvp.memory_map import AccessInfo, ArrayView, IntegerView, RegisterRange, Transaction, route

# Simulation time is kept in picoseconds; mtime counts microseconds.
SCALER = 1_000_000
MAX_CORES = 4096
_UINT64_MAX = (1 << 64) - 1


class Clint(ClintInterface):
    """Timer and software interrupt controller for *num_cores* harts.

    A timer interrupt is pending for a hart while ``mtime >= mtimecmp`` and
    ``mtimecmp != 0``. *clock* returns the current simulation time in
    picoseconds. Delays passed to and returned from ``transport`` are in
    picoseconds as well.
    """

    clock_cycle = 10_000

    def __init__(self, num_cores: int = 1, clock: Callable[[], int] | None = None) -> None:
        if not 0 < num_cores < MAX_CORES:
            raise ValueError(f"number of cores must lie in 1..{MAX_CORES - 1}")
        self.num_cores = num_cores
        self._clock = clock if clock is not None else (lambda: 0)

        self.regs_mtime = RegisterRange(0xBFF8, 8)
        self.mtime = IntegerView(self.regs_mtime, 8)
        self.regs_mtimecmp = RegisterRange(0x4000, 8 * num_cores)
        self.mtimecmp = ArrayView(self.regs_mtimecmp, 8)
        self.regs_msip = RegisterRange(0x0, 4 * num_cores)
        self.msip = ArrayView(self.regs_msip, 4)
        self.register_ranges = [self.regs_mtime, self.regs_mtimecmp, self.regs_msip]

        for reg in self.register_ranges:
            reg.alignment = 4
        self.regs_mtime.pre_read_callback = self._pre_read_mtime
        self.regs_mtimecmp.post_write_callback = self._post_write_mtimecmp
        self.regs_msip.post_write_callback = self._post_write_msip

        self.target_harts: list[ClintInterruptTarget | None] = [None] * num_cores
        # Delay after which ``evaluate`` should run next, or None.
        self.pending_notification: int | None = None

    def _target(self, idx: int) -> ClintInterruptTarget:
        target = self.target_harts[idx]
        if target is None:
            raise RuntimeError(f"no hart connected to CLINT slot {idx}")
        return target

    def _notify(self, delay: int) -> None:
        if self.pending_notification is None or delay < self.pending_notification:
            self.pending_notification = delay

    def update_and_get_mtime(self) -> int:
        now = self._clock() // SCALER
        if now > self.mtime.read():
            # Never move backwards, e.g. due to local time quantums.
            self.mtime.write(now)
        return self.mtime.read()

    def evaluate(self) -> int | None:
        """Update every hart's timer interrupt; return the delay until the next check."""
        self.pending_notification = None
        mtime = self.update_and_get_mtime()
        for idx, cmp in enumerate(self.mtimecmp):
            target = self._target(idx)
            if cmp > 0 and mtime >= cmp:
                target.trigger_timer_interrupt(True)
            else:
                target.trigger_timer_interrupt(False)
                if 0 < cmp < _UINT64_MAX:
                    self._notify((cmp - mtime) * SCALER)
        return self.pending_notification

    def _pre_read_mtime(self, info: AccessInfo) -> bool:
        self.mtime.write((self._clock() + info.delay) // SCALER)
        return True

    def _post_write_mtimecmp(self, info: AccessInfo) -> None:
        self._notify(info.delay)

    def _post_write_msip(self, info: AccessInfo) -> None:
        idx = info.addr // 4
        self.msip[idx] &= 0x1
        self._target(idx).trigger_software_interrupt(self.msip[idx] != 0)

    def transport(self, trans: Transaction, delay: int) -> int:
        """Carry out *trans*; return *delay* plus the access time."""
        delay += 2 * self.clock_cycle
        route("CLINT", self.register_ranges, trans, delay)
        return delay