from .catalog import ToolCatalog

__all__ = ["ToolCatalog"]
