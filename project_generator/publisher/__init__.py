"""Remote publishing of generated projects."""

from .base import PublishRequest, RepositoryPublisher
from .git import GitError
from .github import GitHubPublisher

__all__ = [
    "PublishRequest",
    "RepositoryPublisher",
    "GitError",
    "GitHubPublisher",
]
