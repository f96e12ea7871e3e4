"""Audio-synchronized page-turning video export for narrated books."""

from .environment import load_environment

# Load dotenv files on import so CLI entry points and the FastAPI app agree.
load_environment()

__version__ = "0.1.0"

__all__ = ["__version__", "load_environment"]
