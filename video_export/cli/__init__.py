"""Command line interface for book-video-export."""

from .args import build_cli_parser, parse_cli_args
from .main import main, run_cli

__all__ = ["build_cli_parser", "main", "parse_cli_args", "run_cli"]
