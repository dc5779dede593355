"""Wire codecs for registry payloads."""

from .ruby_marshal import RubyObject, Symbol, dumps, loads

__all__ = ["RubyObject", "Symbol", "dumps", "loads"]
