"""
Error types for fontplan

ConfigError is fatal and stops the whole run. ExternalToolFailure only fails
the node that ran the tool and everything that depends on it.
"""

from typing import List, Optional, Sequence


class FontPlanError(Exception):
    """Base class for all fontplan errors"""


class ConfigError(FontPlanError):
    """Raised when the build configuration cannot be resolved"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ExternalToolFailure(FontPlanError):
    """Raised when an external command exits with a non-zero status"""

    def __init__(self, command: Sequence[str], returncode: int, output: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = f"Command {' '.join(self.command)} exited with status {returncode}"
        if output:
            message += f"\n{output}"
        super().__init__(message)


class CycleError(FontPlanError):
    """Raised when a node depends on itself"""

    def __init__(self, chain: List[str]):
        self.chain = chain
        super().__init__("Dependency cycle detected: " + " -> ".join(chain))


class BuildFailure(FontPlanError):
    """Summary of a run in which one or more requested targets failed"""

    def __init__(self, failures: dict):
        self.failures = failures
        lines = [f"{len(failures)} target(s) failed:"]
        for key, error in failures.items():
            lines.append(f"  {key}: {error}")
        super().__init__("\n".join(lines))
