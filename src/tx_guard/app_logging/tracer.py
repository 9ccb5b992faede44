from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class TraceStep:
    """单个流水线步骤"""

    step: int
    name: str
    started_at: str
    duration_ms: int | None = None
    status: str = "pending"  # pending / success / failed
    input: dict[str, Any] | None = None
    output: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "step": self.step,
            "name": self.name,
            "started_at": self.started_at,
            "status": self.status,
        }
        if self.duration_ms is not None:
            result["duration_ms"] = self.duration_ms
        if self.input:
            result["input"] = self.input
        if self.output:
            result["output"] = self.output
        if self.error:
            result["error"] = self.error
        return result


class Tracer:
    """单次请求的流水线追踪器（只存在于请求生命周期内）"""

    def __init__(self, trace_id: str | None = None, operation: str = "", enabled: bool = True):
        self.trace_id = trace_id or self._generate_trace_id()
        self.operation = operation
        self.enabled = enabled
        self.steps: list[TraceStep] = []
        self._started = time.perf_counter()

    @staticmethod
    def _generate_trace_id() -> str:
        date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"tx-{date_str}-{uuid.uuid4().hex[:12]}"

    def step(self, name: str, input_data: dict[str, Any] | None = None) -> "_TracerStepContext":
        """上下文管理器方式记录一个步骤"""
        return _TracerStepContext(self, name, input_data)

    def _open(self, name: str, input_data: dict[str, Any] | None) -> TraceStep:
        step = TraceStep(
            step=len(self.steps) + 1,
            name=name,
            started_at=datetime.now(timezone.utc).isoformat(),
            input=input_data,
        )
        self.steps.append(step)
        return step

    def _close(self, step: TraceStep, started: float, status: str, output: dict[str, Any] | None, error: str | None) -> None:
        step.duration_ms = int((time.perf_counter() - started) * 1000)
        step.status = status
        step.output = output
        step.error = error
        if self.enabled:
            logger.debug(
                "trace_step",
                trace_id=self.trace_id,
                operation=self.operation,
                step=step.step,
                name=step.name,
                status=status,
                duration_ms=step.duration_ms,
                output=output,
                error=error,
            )

    def get_total_duration_ms(self) -> int:
        return int((time.perf_counter() - self._started) * 1000)

    def get_steps_list(self) -> list[dict[str, Any]]:
        return [step.to_dict() for step in self.steps]

    def get_timings(self) -> dict[str, int]:
        """各步骤耗时汇总"""
        timings: dict[str, int] = {"total_ms": self.get_total_duration_ms()}
        for step in self.steps:
            if step.duration_ms is not None:
                timings[f"{step.name}_ms"] = step.duration_ms
        return timings


class _TracerStepContext:
    def __init__(self, tracer: Tracer, name: str, input_data: dict[str, Any] | None):
        self.tracer = tracer
        self.name = name
        self.input_data = input_data
        self.output_data: dict[str, Any] | None = None
        self.error: str | None = None
        self._step: TraceStep | None = None
        self._started = 0.0

    def __enter__(self) -> "_TracerStepContext":
        self._started = time.perf_counter()
        self._step = self.tracer._open(self.name, self.input_data)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._step is None:
            return False
        if exc_type is not None:
            self.tracer._close(self._step, self._started, "failed", self.output_data, str(exc_val))
        else:
            self.tracer._close(self._step, self._started, "success", self.output_data, self.error)
        return False

    def set_output(self, output_data: dict[str, Any]) -> None:
        self.output_data = output_data

    def set_error(self, error: str) -> None:
        self.error = error
