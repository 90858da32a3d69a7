"""Pydantic v2 models for build requests."""
from __future__ import annotations

from pydantic import RootModel


class BuildRequest(RootModel[list[str]]):
    """Argument vector for one build invocation.

    Example body::

        ["build", "-t", "myimage:latest", "/context"]
    """

    @property
    def args(self) -> list[str]:
        return list(self.root)
