"""Exceptions raised while provisioning a container."""

from typing import List, Optional


class ProvisionError(Exception):
    """Fatal provisioning failure.

    ``hints`` carries troubleshooting lines shown to the operator below the
    error message.
    """

    def __init__(self, message: str, hints: Optional[List[str]] = None):
        super().__init__(message)
        self.hints = list(hints or [])


class ConfigError(ProvisionError):
    """Invalid or incomplete configuration."""
    pass


class PreflightError(ProvisionError):
    """Host is not in a state where provisioning may start."""
    pass


class TemplateError(ProvisionError):
    """OS template could not be resolved or downloaded."""
    pass


class ContainerError(ProvisionError):
    """A pct lifecycle operation failed."""
    pass


class StepError(ProvisionError):
    """A command inside the container exited non-zero."""

    def __init__(self, step: str, returncode: int, stderr: str = "", hints: Optional[List[str]] = None):
        super().__init__(f"Step '{step}' failed with exit code {returncode}", hints)
        self.step = step
        self.returncode = returncode
        self.stderr = stderr
