from .records import ErrorInfo, ExecutionRecord, RunResult, ScenarioResult
from .runner import Runner
from .session import StepModuleImportError, import_step_modules, open_session, run_session
from .world import World

__all__ = [
    "ErrorInfo",
    "ExecutionRecord",
    "RunResult",
    "ScenarioResult",
    "Runner",
    "StepModuleImportError",
    "import_step_modules",
    "open_session",
    "run_session",
    "World",
]
