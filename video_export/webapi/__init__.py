"""HTTP interface for queuing and tracking video exports."""

from .application import create_app

__all__ = ["create_app"]
