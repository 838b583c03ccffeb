"""
Pagesmith - a component-based static page builder.

Pagesmith assembles shared HTML components (navigation, SEO head, footer,
decorations, legal modal) into page templates listed in a JSON page
configuration, fills the placeholder tokens with page-specific values and
writes the finished pages plus static assets into an output directory.
"""

__version__ = "1.0.0"

from .core import PageBuilder, TemplateComposer, ConfigError, TemplateNotFoundError

__all__ = ['PageBuilder', 'TemplateComposer', 'ConfigError', 'TemplateNotFoundError']
