"""Tool base class and result types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from bifrost.core.errors import ErrorCategory, classify_error

if TYPE_CHECKING:
    from bifrost.bridge import LanguageBridge


@dataclass
class ToolResult:
    """Result from tool execution.

    Attributes:
        success: Whether the tool executed successfully
        output: Tool output (empty string on failure)
        error: Error message if failed
        metadata: Structured payload (raw engine results, counts)
        error_category: Classification of error type
        suggestion: Actionable suggestion for fixing the error
    """

    success: bool
    output: str
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    error_category: Optional[ErrorCategory] = None
    suggestion: Optional[str] = None

    @classmethod
    def from_exception(cls, error: BaseException) -> "ToolResult":
        """Failed result carrying the classified error."""
        classified = classify_error(error)
        return cls(
            success=False,
            output="",
            error=classified.message,
            error_category=classified.category,
            suggestion=classified.suggestion,
        )


class Tool(ABC):
    """Base class for language server tools.

    Tool names are ``<prefix>_<operation>``, the prefix being the language
    the bridge serves (``lpc_hover``).
    """

    operation: str
    description: str
    parameters: dict  # JSON Schema

    def __init__(self, bridge: "LanguageBridge", prefix: Optional[str] = None):
        """Initialize tool.

        Args:
            bridge: Bridge running the language server queries
            prefix: Tool name prefix; defaults to the bridge's language id
        """
        self.bridge = bridge
        self.prefix = prefix or bridge.language_id
        self.name = f"{self.prefix}_{self.operation}"

    @property
    def language_label(self) -> str:
        return self.bridge.language_id.upper()

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool."""
        pass

    def get_description(self) -> str:
        return self.description.format(language=self.language_label)

    def get_parameters(self) -> dict:
        """Input schema with the language name filled in."""
        properties = {
            key: {
                **value,
                "description": value.get("description", "").format(
                    language=self.language_label
                ),
            }
            for key, value in self.parameters.get("properties", {}).items()
        }
        return {**self.parameters, "properties": properties}

    def get_schema(self) -> dict:
        """Tool-protocol schema."""
        return {
            "name": self.name,
            "description": self.get_description(),
            "inputSchema": self.get_parameters(),
        }
