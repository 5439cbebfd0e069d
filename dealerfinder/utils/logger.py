"""
Logging utilities for the dealer pipeline.
Rich console output in normal mode, detailed file logs in debug mode.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table


class DealerFinderLogger:
    """
    Logger for the pipeline with rich console output and optional debug mode.
    """

    def __init__(self, debug_mode: bool = False, debug_log_file: Optional[str] = None):
        self.debug_mode = debug_mode
        self.debug_log_file = debug_log_file
        self.console = Console()

        self._setup_logging()

    def _setup_logging(self):
        """Configure Python logging."""
        self.logger = logging.getLogger('dealerfinder')
        self.logger.setLevel(logging.DEBUG if self.debug_mode else logging.INFO)

        # Remove existing handlers
        self.logger.handlers = []

        console_handler = RichHandler(console=self.console, rich_tracebacks=True, show_path=False)
        console_handler.setLevel(logging.DEBUG if self.debug_mode else logging.INFO)
        self.logger.addHandler(console_handler)

        # File handler for debug mode
        if self.debug_mode and self.debug_log_file:
            log_path = Path(self.debug_log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def print_header(self, title: str):
        """Print a header/banner."""
        self.console.print(Panel(title, style="bold blue"))

    def print_section(self, title: str):
        """Print a section header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]")

    def info(self, message: str):
        self.logger.info(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str, exc_info: bool = False):
        self.logger.error(message, exc_info=exc_info)

    def print_table(self, title: str, data: list, headers: list):
        """Print a formatted table."""
        table = Table(title=title)
        for header in headers:
            table.add_column(header)
        for row in data:
            table.add_row(*[str(cell) for cell in row])
        self.console.print(table)

    def print_run_report(self, report):
        """Print the summary of one source run."""
        self.print_section(f"Run finished: {report.source}")

        data = [
            ["Status", report.status.value],
            ["Search terms", len(report.terms_processed)],
            ["Failed terms", ", ".join(report.terms_failed) or "-"],
            ["Extracted", report.extracted],
            ["Rejected", report.rejected],
            ["Duplicates", report.duplicates],
            ["Upserted", report.upserted],
            ["Retired", report.retired],
            ["Failed writes", report.failed_writes],
            ["Duration", f"{report.duration_seconds:.1f}s"],
        ]
        if report.error:
            data.append(["Error", report.error])

        table = Table(show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="bold")
        for metric, value in data:
            table.add_row(str(metric), str(value))
        self.console.print(table)


# Global logger instance
_logger_instance: Optional[DealerFinderLogger] = None


def get_logger() -> DealerFinderLogger:
    """Get the global logger instance."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = DealerFinderLogger()
    return _logger_instance


def init_logger(debug_mode: bool = False, debug_log_file: Optional[str] = None) -> DealerFinderLogger:
    """Initialize the global logger."""
    global _logger_instance
    _logger_instance = DealerFinderLogger(debug_mode=debug_mode, debug_log_file=debug_log_file)
    return _logger_instance
