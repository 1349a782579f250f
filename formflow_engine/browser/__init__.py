"""Browser-facing helpers: element re-targeting and page-side scripts."""

from .element_resolver import DEFAULT_MATCHERS, ElementResolver, Matcher

__all__ = ["DEFAULT_MATCHERS", "ElementResolver", "Matcher"]
