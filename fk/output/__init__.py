"""Output abstractions shared by services and the CLI."""

from fk.output.console import ConsoleProtocol, MockConsole, OutputRecord, RichConsole, Style, TableRow

__all__ = ["ConsoleProtocol", "MockConsole", "OutputRecord", "RichConsole", "Style", "TableRow"]
