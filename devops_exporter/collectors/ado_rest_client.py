"""
Azure DevOps REST API Client

Fetches the records the collectors flatten: projects, latest builds, release
definitions and release history. Uses AsyncSecureHTTPClient for HTTP/2,
connection pooling and SSL enforcement.

Usage:
    from devops_exporter.collectors.ado_rest_client import get_ado_rest_client

    client = get_ado_rest_client()

    projects = await client.list_projects()
    builds = await client.list_latest_builds(project_id=projects[0].id)
    releases = await client.list_release_history(project_id=projects[0].id, min_created_time=since)

Release management endpoints live on a separate host (vsrm.dev.azure.com);
the client derives it from the organization URL.

API Documentation:
    https://learn.microsoft.com/en-us/rest/api/azure/devops/?view=azure-devops-rest-7.1
"""

import asyncio
import base64
from datetime import datetime
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit

import httpx

from devops_exporter.async_http_client import AsyncSecureHTTPClient
from devops_exporter.collectors.ado_rest_transformers import (
    BuildTransformer,
    ProjectTransformer,
    ReleaseTransformer,
)
from devops_exporter.core import get_config, get_logger
from devops_exporter.core.collector_metrics import get_current_tracker
from devops_exporter.domain.build import Build, Project
from devops_exporter.domain.release import Release, ReleaseDefinition
from devops_exporter.utils.datetime_utils import format_ado_timestamp
from devops_exporter.utils.error_handling import log_and_continue

logger = get_logger(__name__)

CONTINUATION_HEADER = "x-ms-continuationtoken"


class AzureDevOpsFetchError(Exception):
    """
    Raised when a record list cannot be fetched.

    Attributes:
        url: Request URL
        status_code: HTTP status when the server answered, else None
    """

    def __init__(self, message: str, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def release_management_url(organization_url: str) -> str:
    """
    Derive the release management (vsrm) host from the organization URL.

    Examples:
        >>> release_management_url("https://dev.azure.com/myorg")
        'https://vsrm.dev.azure.com/myorg'

        >>> release_management_url("https://myorg.visualstudio.com")
        'https://myorg.vsrm.visualstudio.com'
    """
    parts = urlsplit(organization_url.rstrip("/"))
    host = parts.netloc

    if "vsrm." in host:
        return organization_url.rstrip("/")
    if host == "dev.azure.com":
        host = "vsrm.dev.azure.com"
    elif host.endswith(".visualstudio.com"):
        host = host[: -len(".visualstudio.com")] + ".vsrm.visualstudio.com"

    return urlunsplit((parts.scheme, host, parts.path, "", ""))


class AzureDevOpsRESTClient:
    """
    Azure DevOps REST API v7.1 client using direct HTTP calls.

    Features:
    - Async HTTP/2 requests with connection pooling
    - Base64-encoded PAT authentication
    - Retry logic for rate limiting, server errors and network errors
    - Continuation token pagination
    """

    API_VERSION = "7.1"
    MAX_PAGES = 100

    def __init__(self, organization_url: str, pat: str, max_retries: int = 3):
        """
        Initialize Azure DevOps REST client.

        Args:
            organization_url: Azure DevOps organization URL (e.g., https://dev.azure.com/myorg)
            pat: Personal Access Token for authentication
            max_retries: Attempts per request for transient errors

        Raises:
            ValueError: If organization_url or pat is empty
        """
        if not organization_url or not pat:
            raise ValueError("organization_url and pat are required")

        self.organization_url = organization_url.rstrip("/")
        self.release_url = release_management_url(self.organization_url)
        self.pat = pat
        self.max_retries = max(1, max_retries)
        self.auth_header = self._build_auth_header(pat)

    def _build_auth_header(self, pat: str) -> dict[str, str]:
        """
        Build Basic Authentication header from PAT.

        Azure DevOps uses Basic Auth with empty username and PAT as password.
        """
        credentials = f":{pat}"
        b64_credentials = base64.b64encode(credentials.encode()).decode()  # nosec B108
        return {
            "Authorization": f"Basic {b64_credentials}",
            "Accept": "application/json",
        }

    def _build_url(self, project: str | None, resource: str, base_url: str | None = None, **params: Any) -> str:
        """
        Build Azure DevOps REST API URL with query parameters.

        Args:
            project: Project id or name (None for organization-level APIs)
            resource: Resource path (e.g., "build/builds", "release/releases")
            base_url: Host to use instead of the organization URL (release APIs)
            **params: Query parameters (None values are filtered out)

        Returns:
            Complete API URL with query string

        Example:
            _build_url("p1", "build/builds", **{"api-version": "7.1"})
            -> "https://dev.azure.com/org/p1/_apis/build/builds?api-version=7.1"
        """
        root = base_url or self.organization_url
        if project:
            url = f"{root}/{project}/_apis/{resource}"
        else:
            url = f"{root}/_apis/{resource}"

        filtered_params = {k: v for k, v in params.items() if v is not None}
        if filtered_params:
            url = f"{url}?{urlencode(filtered_params, safe='$,:')}"

        return url

    async def _handle_api_call(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Execute API call with retry logic and error handling.

        Handles:
        - Rate limiting (429) honouring Retry-After
        - Server errors (500, 502, 503) with exponential backoff
        - Network errors with exponential backoff
        - Authentication errors (401, 403) fail fast

        Args:
            method: HTTP method (only GET is used by the exporter)
            url: Full API URL
            **kwargs: Additional arguments for the HTTP client

        Returns:
            The successful response

        Raises:
            httpx.HTTPStatusError: For non-retryable HTTP errors
            httpx.RequestError: For network errors after retries exhausted
        """
        if method.upper() != "GET":
            raise ValueError(f"Unsupported HTTP method: {method}")

        tracker = get_current_tracker()
        headers = {**self.auth_header, **kwargs.pop("headers", {})}
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                if tracker:
                    tracker.record_api_call()

                async with AsyncSecureHTTPClient() as client:
                    response = await client.get(url, headers=headers, **kwargs)
                    response.raise_for_status()
                    return response

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code

                if status_code in [401, 403]:
                    logger.error(f"Authentication failed (HTTP {status_code}) for {url}")
                    raise

                if status_code == 429:
                    if tracker:
                        tracker.record_rate_limit_hit()

                    try:
                        retry_after = int(e.response.headers.get("Retry-After", 60))
                    except ValueError:
                        retry_after = 60
                    logger.warning(
                        f"Rate limited, retrying after {retry_after}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    last_error = e
                    if attempt + 1 < self.max_retries:
                        await asyncio.sleep(retry_after)
                    continue

                if status_code in [500, 502, 503]:
                    if tracker:
                        tracker.record_retry()

                    backoff = 2**attempt
                    logger.warning(
                        f"Server error (HTTP {status_code}), retrying in {backoff}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    last_error = e
                    if attempt + 1 < self.max_retries:
                        await asyncio.sleep(backoff)
                    continue

                logger.error(f"HTTP error {status_code} for {url}")
                raise

            except (httpx.TimeoutException, httpx.RequestError) as e:
                if tracker:
                    tracker.record_retry()

                backoff = 2**attempt
                logger.warning(
                    f"Network error, retrying in {backoff}s (attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                last_error = e
                if attempt + 1 < self.max_retries:
                    await asyncio.sleep(backoff)
                continue

        if last_error:
            log_and_continue(logger, last_error, {"url": url, "max_retries": self.max_retries}, "ADO API call")
            raise last_error

        raise RuntimeError("Unexpected: No error but retries exhausted")

    async def _get_page(self, url: str) -> tuple[dict[str, Any], str | None]:
        """
        Fetch one page and its continuation token.

        Raises:
            AzureDevOpsFetchError: On any HTTP, network or decoding failure
        """
        try:
            response = await self._handle_api_call("GET", url)
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise AzureDevOpsFetchError(
                f"HTTP {e.response.status_code} from Azure DevOps", url=url, status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise AzureDevOpsFetchError(f"Request to Azure DevOps failed: {e}", url=url) from e
        except ValueError as e:
            raise AzureDevOpsFetchError(f"Invalid JSON from Azure DevOps: {e}", url=url) from e

        if not isinstance(payload, dict):
            raise AzureDevOpsFetchError("Unexpected response shape from Azure DevOps", url=url)

        token = response.headers.get(CONTINUATION_HEADER) or None
        return payload, token

    async def _get_all(
        self, project: str | None, resource: str, base_url: str | None = None, **params: Any
    ) -> list[Any]:
        """
        Fetch every page of a list endpoint, following continuation tokens.

        Returns:
            Concatenated "value" arrays of all pages
        """
        items: list[Any] = []
        token: str | None = None

        for _ in range(self.MAX_PAGES):
            url = self._build_url(project, resource, base_url, continuationToken=token, **params)
            payload, next_token = await self._get_page(url)
            items.extend(payload.get("value", []) or [])

            if not next_token or next_token == token:
                return items
            token = next_token

        logger.warning(f"Stopped paging {resource} after {self.MAX_PAGES} pages", extra={"project": project})
        return items

    # ==============================
    # Core APIs
    # ==============================

    async def list_projects(self, top: int | None = None) -> list[Project]:
        """
        List projects of the organization.

        REST Endpoint: GET {org}/_apis/projects?$top={top}&api-version=7.1

        Args:
            top: Maximum number of projects

        Returns:
            List of Project records
        """
        items = await self._get_all(None, "projects", **{"$top": top, "api-version": self.API_VERSION})
        return ProjectTransformer.transform_projects_response(items)

    # ==============================
    # Build APIs
    # ==============================

    async def list_latest_builds(self, project_id: str, top: int | None = None) -> list[Build]:
        """
        Get the latest build of every build definition of a project.

        REST Endpoint:
            GET {org}/{project}/_apis/build/builds?maxBuildsPerDefinition=1
                &deletedFilter=excludeDeleted&$top={top}&api-version=7.1

        Args:
            project_id: Project id
            top: Maximum number of builds

        Returns:
            List of Build records
        """
        url = self._build_url(
            project_id,
            "build/builds",
            maxBuildsPerDefinition=1,
            deletedFilter="excludeDeleted",
            **{"$top": top, "api-version": self.API_VERSION},
        )
        payload, _ = await self._get_page(url)
        return BuildTransformer.transform_builds_response(payload)

    # ==============================
    # Release Management APIs
    # ==============================

    async def list_release_definitions(self, project_id: str, top: int | None = None) -> list[ReleaseDefinition]:
        """
        Get release definitions of a project, with their environments.

        REST Endpoint:
            GET {vsrm}/{project}/_apis/release/definitions?$expand=environments
                &isDeleted=false&$top={top}&api-version=7.1

        Args:
            project_id: Project id
            top: Maximum number of definitions

        Returns:
            List of ReleaseDefinition records
        """
        items = await self._get_all(
            project_id,
            "release/definitions",
            self.release_url,
            isDeleted="false",
            **{"$expand": "environments", "$top": top, "api-version": self.API_VERSION},
        )
        return ReleaseTransformer.transform_definitions_response(items)

    async def list_release_history(
        self, project_id: str, min_created_time: datetime, top: int | None = None
    ) -> list[Release]:
        """
        Get releases created since min_created_time, with environments, artifacts and approvals.

        REST Endpoint:
            GET {vsrm}/{project}/_apis/release/releases?minCreatedTime={time}
                &$expand=environments,artifacts,approvals&api-version=7.1

        Args:
            project_id: Project id
            min_created_time: Oldest creation time to include
            top: Page size

        Returns:
            List of Release records (all pages)
        """
        items = await self._get_all(
            project_id,
            "release/releases",
            self.release_url,
            minCreatedTime=format_ado_timestamp(min_created_time),
            queryOrder="descending",
            **{"$expand": "environments,artifacts,approvals", "$top": top, "api-version": self.API_VERSION},
        )
        return ReleaseTransformer.transform_releases_response(items)


def get_ado_rest_client() -> AzureDevOpsRESTClient:
    """
    Get Azure DevOps REST client with credentials from config.

    Returns:
        AzureDevOpsRESTClient: Authenticated REST client

    Raises:
        ConfigurationError: If ADO_ORGANIZATION_URL or ADO_PAT are missing or invalid
    """
    config = get_config()
    ado_config = config.get_ado_config()
    exporter_config = config.get_exporter_config()
    return AzureDevOpsRESTClient(
        organization_url=ado_config.organization_url,
        pat=ado_config.pat,
        max_retries=exporter_config.request_retries,
    )
