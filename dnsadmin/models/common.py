"""
Common models and types used across services
"""

from datetime import datetime
from pydantic import BaseModel, Field


class ActionResult(BaseModel):
    """Result of an operation that may fail with a message"""
    success: bool
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class CommandResult(BaseModel):
    """Result of an external command"""
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def message(self) -> str:
        """Tool error text, falling back to stdout"""
        return self.stderr.strip() or self.stdout.strip()


class ValidationResult(BaseModel):
    """named-checkconf / named-checkzone outcome"""
    valid: bool
    output: str
