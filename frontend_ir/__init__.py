"""Convert TypeScript/JavaScript, React and Angular sources into an IR v1 graph."""

__version__ = "0.1.0"

TOOL_NAME = "frontend-ir"

__all__ = ["TOOL_NAME", "__version__"]
