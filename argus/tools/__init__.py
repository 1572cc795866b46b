from argus.tools.capabilities import (
    ToolCapabilities as ToolCapabilities,
    WorkspaceAccessor as WorkspaceAccessor,
)
from argus.tools.executor import (
    ToolExecutionOutcome as ToolExecutionOutcome,
    ToolExecutor as ToolExecutor,
)
from argus.tools.registry import ToolRegistry as ToolRegistry
from argus.tools.validator import (
    ParameterValidator as ParameterValidator,
    ValidationResult as ValidationResult,
)
from argus.tools.workspace import LocalWorkspace as LocalWorkspace
