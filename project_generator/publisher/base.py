"""Publishing contract shared by the dispatcher and the hosting backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable


@dataclass
class PublishRequest:
    """Everything a publisher needs to turn a written tree into a repository."""

    path: Path
    token: str = field(repr=False)
    name: str
    description: str = ""
    private: bool = True
    topic: str | None = None
    branch: str = "main"
    create_develop_branch: bool = False
    no_deploy: bool = False


@runtime_checkable
class RepositoryPublisher(Protocol):
    """Creates a remote repository from a local tree.

    ``publish`` is invoked exactly once per run and returns the URL of the
    created repository.  Failures are raised as ``PublishError``.
    """

    async def publish(self, request: PublishRequest) -> str: ...
