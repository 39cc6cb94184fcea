"""Wall-clock and CPU-time accumulators owned by solver instances."""

import time
from dataclasses import dataclass, field


@dataclass
class RunTimer:
    """Accumulates wall and CPU seconds over start/stop intervals.
    
    Attributes
    ----------
    walltime : float
        Accumulated wall-clock seconds.
    cputime : float
        Accumulated process CPU seconds (all threads).
    """
    walltime: float = 0.0
    cputime: float = 0.0
    _wall0: float = field(default=0.0, repr=False)
    _cpu0: float = field(default=0.0, repr=False)
    _running: bool = field(default=False, repr=False)
    
    def start(self) -> None:
        self._wall0 = time.perf_counter()
        self._cpu0 = time.process_time()
        self._running = True
    
    def stop(self) -> None:
        if not self._running:
            return
        self.walltime += time.perf_counter() - self._wall0
        self.cputime += time.process_time() - self._cpu0
        self._running = False
    
    def reset(self) -> None:
        self.walltime = 0.0
        self.cputime = 0.0
        self._running = False
    
    def __enter__(self) -> "RunTimer":
        self.start()
        return self
    
    def __exit__(self, *exc) -> None:
        self.stop()
