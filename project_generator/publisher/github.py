"""Async GitHub publisher.

Creates a repository through the GitHub REST API, pushes the generated tree
as a single commit and performs the optional follow-up steps: repository
topic, ``develop`` branch and deployment workflow dispatch.  Only the
repository creation and the push are fatal; the follow-ups print a warning
and carry on.

Typical usage::

    publisher = GitHubPublisher(settings.github)
    url = await publisher.publish(PublishRequest(path=tree, token=token, name="my-lib"))
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from project_generator.config import GitHubConfig
from project_generator.errors import PublishError
from project_generator.publisher.base import PublishRequest
from project_generator.publisher.git import _run_git, redact
from project_generator.utils import console, print_debug, print_warning, slugify

DEV_WORKFLOW = "deploy-dev.yml"
PROD_WORKFLOW = "deploy-prod.yml"
DEVELOP_BRANCH = "develop"

_USER_AGENT = "project-generator"
_DISPATCH_GAP = 2.0


class GitHubPublisher:
    """Publishes a written tree as a new GitHub repository.

    Each ``publish`` call uses its own ``httpx.AsyncClient``.  The optional
    *transport* is handed to that client (tests pass an
    ``httpx.MockTransport``) and *sleep* replaces ``asyncio.sleep`` for the
    waits GitHub needs between steps.
    """

    def __init__(
        self,
        config: GitHubConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config or GitHubConfig()
        self._transport = transport
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self, token: str) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` authenticated with *token*."""
        return httpx.AsyncClient(
            base_url=self.config.api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": _USER_AGENT,
            },
            timeout=httpx.Timeout(self.config.timeout, connect=10.0),
            transport=self._transport,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        action: str,
        token: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request; any non-2xx status or transport failure raises."""
        print_debug(f"{method} {url}")
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise PublishError(
                f"Network failure while {action}: {redact(str(exc), [token])}"
            ) from exc

        if response.is_success:
            return response
        detail = redact(_error_detail(response), [token])
        if response.status_code in (401, 403):
            raise PublishError(f"Authentication rejected while {action}: {detail}")
        if response.status_code == 422:
            raise PublishError(f"Repository name already exists or is invalid: {detail}")
        raise PublishError(f"GitHub API error ({response.status_code}) while {action}: {detail}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, request: PublishRequest) -> str:
        """Create the repository, push the tree and run the follow-up steps.

        Returns:
            The repository's web URL.

        Raises:
            PublishError: If the repository cannot be created or the push fails.
        """
        async with self._client(request.token) as client:
            repo = await self.create_repository(client, request)
            full_name = repo["full_name"]
            html_url = repo.get("html_url") or f"https://github.com/{full_name}"
            console.print(f"  [green]+[/green] Created repository [bold]{full_name}[/bold]")

            if request.topic:
                await self.add_topic(client, request, full_name)

            await self.push_tree(request, repo)
            console.print(f"  [green]+[/green] Pushed to {request.branch}")

            if request.create_develop_branch:
                await self._sleep(self.config.branch_setup_delay)
                await self.create_develop_branch(client, request, full_name)

            if self._should_dispatch(request):
                await self.trigger_deployments(client, request, full_name)

        return html_url

    async def create_repository(
        self, client: httpx.AsyncClient, request: PublishRequest
    ) -> dict[str, Any]:
        """``POST`` the new repository under the organisation, or the user."""
        org = self.config.organization
        url = f"/orgs/{quote(org, safe='')}/repos" if org else "/user/repos"
        payload = {
            "name": request.name,
            "description": request.description,
            "private": request.private,
            "auto_init": False,
        }
        response = await self._request(
            client, "POST", url, f"creating repository '{request.name}'", request.token,
            json=payload,
        )
        try:
            data = response.json()
        except ValueError as exc:
            raise PublishError(
                f"Unexpected response while creating repository '{request.name}': not JSON"
            ) from exc
        if not isinstance(data, dict) or "full_name" not in data:
            raise PublishError(f"Unexpected response while creating repository '{request.name}'")
        return data

    async def add_topic(
        self, client: httpx.AsyncClient, request: PublishRequest, full_name: str
    ) -> None:
        topic = slugify(request.topic or "")
        if not topic:
            return
        try:
            await self._request(
                client, "PUT", f"/repos/{full_name}/topics", "adding topic", request.token,
                json={"names": [topic]},
            )
        except PublishError as exc:
            print_warning(f"  Could not add topic '{topic}': {exc}")
            return
        console.print(f"  [green]+[/green] Added topic '{topic}'")

    async def push_tree(self, request: PublishRequest, repo: dict[str, Any]) -> None:
        """Commit the whole tree once and push it to ``request.branch``."""
        remote = _authenticated_remote(repo, request.token)
        secrets = [remote, request.token, quote(request.token, safe="")]
        cwd = request.path

        await _run_git("init", cwd=cwd)
        await _run_git("add", "--all", cwd=cwd)
        await _run_git(
            "-c", f"user.name={self.config.author_name}",
            "-c", f"user.email={self.config.author_email}",
            "-c", "commit.gpgsign=false",
            "commit", "--allow-empty", "-m", "first commit",
            cwd=cwd,
        )
        await _run_git(
            "push", remote, f"HEAD:refs/heads/{request.branch}",
            cwd=cwd, secrets=secrets,
        )

    async def create_develop_branch(
        self, client: httpx.AsyncClient, request: PublishRequest, full_name: str
    ) -> None:
        """Create ``develop`` from the pushed branch; existing branches are left alone."""
        try:
            existing = await client.get(f"/repos/{full_name}/git/refs/heads/{DEVELOP_BRANCH}")
            if existing.is_success:
                console.print(f"  [dim]Branch '{DEVELOP_BRANCH}' already exists, skipping[/dim]")
                return

            base = await self._request(
                client, "GET", f"/repos/{full_name}/git/refs/heads/{request.branch}",
                f"reading branch '{request.branch}'", request.token,
            )
            sha = base.json()["object"]["sha"]
            await self._request(
                client, "POST", f"/repos/{full_name}/git/refs",
                f"creating branch '{DEVELOP_BRANCH}'", request.token,
                json={"ref": f"refs/heads/{DEVELOP_BRANCH}", "sha": sha},
            )
        except (PublishError, httpx.TransportError, KeyError, TypeError, ValueError) as exc:
            print_warning(f"  Could not create branch '{DEVELOP_BRANCH}': {exc}")
            return
        console.print(f"  [green]+[/green] Created branch '{DEVELOP_BRANCH}'")

    async def trigger_deployments(
        self, client: httpx.AsyncClient, request: PublishRequest, full_name: str
    ) -> None:
        """Dispatch the dev workflow on ``develop`` and the prod workflow on the main branch."""
        # GitHub needs a moment to index freshly pushed workflows.
        await self._sleep(self.config.workflow_dispatch_delay)
        await self._dispatch(client, request, full_name, DEV_WORKFLOW, DEVELOP_BRANCH)
        await self._sleep(_DISPATCH_GAP)
        await self._dispatch(client, request, full_name, PROD_WORKFLOW, request.branch)

    async def _dispatch(
        self,
        client: httpx.AsyncClient,
        request: PublishRequest,
        full_name: str,
        workflow: str,
        ref: str,
    ) -> None:
        try:
            await self._request(
                client, "POST", f"/repos/{full_name}/actions/workflows/{workflow}/dispatches",
                f"dispatching {workflow}", request.token,
                json={"ref": ref},
            )
        except PublishError as exc:
            print_warning(f"  Could not trigger {workflow}: {exc}")
            return
        console.print(f"  [green]+[/green] Triggered {workflow} on {ref}")

    def _should_dispatch(self, request: PublishRequest) -> bool:
        workflows = request.path / ".github" / "workflows"
        if not ((workflows / DEV_WORKFLOW).is_file() and (workflows / PROD_WORKFLOW).is_file()):
            return False
        if not self.config.trigger_workflows:
            console.print("  [dim]Workflow dispatch disabled by settings[/dim]")
            return False
        if request.no_deploy:
            console.print("  [dim]Workflow dispatch disabled by no_deploy[/dim]")
            return False
        return True


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _authenticated_remote(repo: dict[str, Any], token: str) -> str:
    """HTTPS clone URL with the token as credentials."""
    clone_url = repo.get("clone_url") or f"https://github.com/{repo['full_name']}.git"
    parts = urlsplit(clone_url)
    netloc = f"x-access-token:{quote(token, safe='')}@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme or "https", netloc, parts.path, "", ""))


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        message = str(data["message"])
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            details = [e.get("message", "") for e in errors if isinstance(e, dict)]
            details = [d for d in details if d]
            if details:
                message += f" ({'; '.join(details)})"
        return message
    return response.reason_phrase
