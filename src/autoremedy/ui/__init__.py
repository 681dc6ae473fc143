"""Command-line interface and output rendering."""

from autoremedy.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIRenderer", "create_renderer"]
