"""code_aggregator: turn a source tree into one Markdown document."""

__version__ = "0.1.0"
