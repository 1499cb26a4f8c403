"""Multi-repository branch status and pull request lifecycle tooling."""

from .service import BranchService

__version__ = "0.1.0"

__all__ = ["BranchService", "__version__"]
