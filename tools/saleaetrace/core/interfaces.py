"""
Shared tool interfaces: configuration, results and output formatting.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass
class ToolConfig:
    """Configuration passed to a tool's run() method."""
    tool_name: str
    input_paths: List[str] = field(default_factory=list)
    output_format: str = 'text'
    verbose: bool = False
    custom_args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of a tool run."""
    success: bool
    data: Optional[Dict[str, Any]]
    errors: List[str]
    metadata: Dict[str, Any]
    execution_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ToolInterface(ABC):
    """Base class for tools that can be run from a CLI or chained."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @abstractmethod
    def run(self, config: ToolConfig) -> ToolResult:
        pass


class ConfigBuilder:
    """Builds a ToolConfig from parsed argparse arguments."""

    @staticmethod
    def from_args(args, tool_name: str) -> ToolConfig:
        paths = getattr(args, 'paths', None) or []
        return ToolConfig(
            tool_name=tool_name,
            input_paths=[str(p) for p in paths],
            output_format=getattr(args, 'format', 'text') or 'text',
            verbose=bool(getattr(args, 'verbose', False)),
        )


class OutputFormatter:
    """Formats a ToolResult as text, JSON or quiet output."""

    def format_result(self, result: ToolResult, output_format: str) -> str:
        if output_format == 'json':
            return self._format_json(result)
        if output_format == 'quiet':
            return self._format_quiet(result)
        return self._format_text(result)

    def _format_json(self, result: ToolResult) -> str:
        return json.dumps(result.to_dict(), indent=2, default=str)

    def _format_text(self, result: ToolResult) -> str:
        if not result.success:
            return "\n".join(result.errors)
        return json.dumps(result.data, indent=2, default=str)

    def _format_quiet(self, result: ToolResult) -> str:
        return ""
