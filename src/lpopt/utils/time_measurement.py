"""Wall-clock and CPU time spans for pipeline stages."""

import os
import time
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class TimeMeasurement:
    span_name: str
    wall_time: float
    process_user_time: float
    process_system_time: float
    children_user_time: float
    children_system_time: float


@dataclass
class TimeRecorder:
    """Collects :class:`TimeMeasurement` objects for named spans."""

    measurements: list[TimeMeasurement] = field(default_factory=list)

    @contextmanager
    def measure(self, span_name: str):
        start_wall = time.perf_counter()
        start = os.times()
        try:
            yield
        finally:
            end = os.times()
            self.measurements.append(
                TimeMeasurement(
                    span_name=span_name,
                    wall_time=time.perf_counter() - start_wall,
                    process_user_time=end.user - start.user,
                    process_system_time=end.system - start.system,
                    children_user_time=end.children_user - start.children_user,
                    children_system_time=end.children_system - start.children_system,
                )
            )

    def wall_times(self) -> dict[str, float]:
        """Span name -> wall time, later spans overwrite earlier ones."""
        return {m.span_name: m.wall_time for m in self.measurements}
