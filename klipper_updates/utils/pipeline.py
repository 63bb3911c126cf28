"""
Klipper Host Update Helper
Copyright (C) 2024 klipper-updates contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Ordered step pipeline for lifecycle operations.

An operation (install, update, ...) is a list of named steps run in order.
Each step returns a StepResult. A failed fatal step stops the pipeline; a
failed soft step is recorded and the pipeline moves on.

Usage:
    from klipper_updates.utils.pipeline import Step, StepResult, run_pipeline

    result = run_pipeline("install", [
        Step("clone", lambda: clone(cfg)),
        Step("patch", lambda: patch(cfg), fatal=False),
    ])
"""

import subprocess
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

from .index import log_message


class PipelineError(Exception):
    """Raised inside a step to abort it with a message."""
    pass


@dataclass
class StepResult:
    """Outcome of one pipeline step."""
    name: str
    success: bool
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def ok(cls, name: str, message: str = "", **data) -> 'StepResult':
        return cls(name=name, success=True, message=message, data=data)

    @classmethod
    def failed(cls, name: str, message: str, **data) -> 'StepResult':
        return cls(name=name, success=False, message=message, data=data)


@dataclass
class Step:
    name: str
    action: Callable[[], Optional[StepResult]]
    fatal: bool = True


@dataclass
class PipelineResult:
    """Outcome of a whole pipeline run."""
    operation: str
    success: bool
    steps: List[StepResult]
    aborted_at: Optional[str] = None

    @property
    def error(self) -> Optional[str]:
        for step in self.steps:
            if not step.success:
                return step.message
        return None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": self.success,
            "operation": self.operation,
            "steps": [step.to_dict() for step in self.steps]
        }
        if self.aborted_at:
            result["aborted_at"] = self.aborted_at
        if not self.success:
            result["error"] = self.error
        return result


def run_pipeline(operation: str, steps: List[Step]) -> PipelineResult:
    """
    Run steps in order until a fatal step fails.

    Args:
        operation: Name of the operation, used in log lines
        steps: Ordered steps to execute

    Returns:
        PipelineResult: Per-step results and the overall outcome
    """
    results: List[StepResult] = []
    success = True

    for step in steps:
        log_message(f"[{operation}] {step.name}", "DEBUG")
        try:
            result = step.action()
        except PipelineError as e:
            result = StepResult.failed(step.name, str(e))
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            log_message(f"[{operation}] step '{step.name}' raised {type(e).__name__}: {e}", "DEBUG")
            result = StepResult.failed(step.name, str(e))

        # A step returning None has nothing to report
        if result is None:
            result = StepResult.ok(step.name)

        results.append(result)

        if not result.success:
            success = False
            if step.fatal:
                log_message(f"[{operation}] aborted at step '{step.name}': {result.message}", "ERROR")
                return PipelineResult(operation, False, results, aborted_at=step.name)
            log_message(f"[{operation}] step '{step.name}' failed: {result.message}", "WARNING")

    return PipelineResult(operation, success, results)
