"""
REST clients for Azure Resource Manager.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential

from models import OperationResult

logger = logging.getLogger(__name__)

API_BASE = "https://management.azure.com"
ARM_SCOPE = "https://management.azure.com/.default"


class ProviderError(RuntimeError):
    """Error returned by the Azure control plane."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OperationTimeoutError(ProviderError):
    """A long-running operation did not finish within the allotted time."""


class Completion(ABC):
    """Handle on an asynchronous provider operation."""

    @abstractmethod
    def wait(self, timeout: float) -> OperationResult:
        """Block until the operation finishes or ``timeout`` seconds elapse."""


class CompletedOperation(Completion):
    """Operation that finished in the initial response."""

    def __init__(self, result: OperationResult):
        self.result = result

    def wait(self, timeout: float) -> OperationResult:
        return self.result


class ArmOperation(Completion):
    """
    Long-running ARM operation tracked through its polling URL.

    ``style`` is "async" for ``Azure-AsyncOperation`` status documents and
    "location" for ``Location`` header polling.
    """

    TERMINAL_FAILURES = {"Failed", "Canceled"}

    def __init__(
        self,
        client: "ArmRestClient",
        description: str,
        poll_url: str,
        style: str = "async",
        resource_url: Optional[str] = None,
    ):
        self.client = client
        self.description = description
        self.poll_url = poll_url
        self.style = style
        self.resource_url = resource_url

    def _poll_async(self, deadline: float) -> Optional[OperationResult]:
        resp = self.client._request_with_retry("GET", self.poll_url, deadline=deadline)
        if resp.status_code != 200:
            raise ProviderError(
                f"Polling {self.description} failed ({resp.status_code}): {resp.text}",
                resp.status_code,
            )
        data = self.client._decode(resp, self.description)
        status = data.get("status", "")
        if status == "Succeeded":
            value: Dict[str, Any] = {}
            if self.resource_url:
                value = self.client._get_json(
                    self.resource_url, self.description, deadline=deadline
                )
            return OperationResult(value=value)
        if status in self.TERMINAL_FAILURES:
            message = (data.get("error") or {}).get("message", "")
            return OperationResult(
                error=ProviderError(f"{self.description} {status}: {message}")
            )
        return None

    def _poll_location(self, deadline: float) -> Optional[OperationResult]:
        resp = self.client._request_with_retry("GET", self.poll_url, deadline=deadline)
        if resp.status_code == 202:
            return None
        if resp.status_code in (200, 201, 204):
            value = self.client._decode(resp, self.description) if resp.content else {}
            return OperationResult(value=value)
        return OperationResult(
            error=ProviderError(
                f"{self.description} failed ({resp.status_code}): {resp.text}",
                resp.status_code,
            )
        )

    def wait(self, timeout: float) -> OperationResult:
        """
        Poll the operation until it reaches a terminal state.

        Polls, retries of failed polls and the sleeps between them all
        count against ``timeout``.

        Args:
            timeout: Wall-clock limit in seconds

        Returns:
            OperationResult carrying the final resource or the error
        """
        deadline = time.time() + timeout
        poll = self._poll_location if self.style == "location" else self._poll_async
        while True:
            try:
                result = poll(deadline)
            except ProviderError as e:
                return OperationResult(error=e)
            if result is not None:
                logger.debug(f"{self.description} finished (ok={result.ok})")
                return result

            remaining = deadline - time.time()
            if remaining <= 0:
                logger.error(f"Timeout waiting for {self.description} after {timeout}s")
                return OperationResult(
                    error=OperationTimeoutError(
                        f"{self.description} did not complete within {timeout}s"
                    )
                )
            time.sleep(min(self.client.poll_interval, remaining))


class ProviderClient(ABC):
    """Operations a resource driver needs from the cloud control plane."""

    @abstractmethod
    def get(self, group: str, name: str) -> Dict[str, Any]:
        """Return the provider's descriptor of a resource."""

    @abstractmethod
    def create_or_update(
        self, group: str, name: str, body: Dict[str, Any]
    ) -> Completion:
        """Submit a create/update request."""

    @abstractmethod
    def delete(self, group: str, name: str) -> Completion:
        """Submit a delete request."""


class ArmRestClient(ProviderClient):
    """REST client for one Azure Resource Manager resource type."""

    API_VERSION = ""
    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        subscription_id: str,
        timeout_s: int = 60,
        max_retries: int = 5,
        base_delay: float = 5.0,
        poll_interval: float = 15.0,
        credential: Any = None,
    ):
        """
        Initialize the ARM REST client.

        Args:
            subscription_id: Azure subscription ID
            timeout_s: Request timeout in seconds
            max_retries: Maximum number of retries for transient errors
            base_delay: Base delay for exponential backoff
            poll_interval: Interval between long-running operation polls
            credential: Azure credential; DefaultAzureCredential when omitted
        """
        self.subscription_id = subscription_id
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.poll_interval = poll_interval

        self.credential = credential or DefaultAzureCredential()
        self.session = requests.Session()

    def _url(self, path: str) -> str:
        """Construct full API URL from path."""
        return f"{API_BASE}/{path.lstrip('/')}"

    @abstractmethod
    def resource_path(self, group: str, name: str) -> str:
        """ARM path of the resource called ``name`` in ``group``."""

    def _headers(self) -> Dict[str, str]:
        try:
            token = self.credential.get_token(ARM_SCOPE)
        except AzureError as e:
            raise ProviderError(f"Failed to acquire an access token: {e}") from e
        return {"Authorization": f"Bearer {token.token}"}

    def _request_with_retry(
        self, method: str, url: str, deadline: Optional[float] = None, **kwargs
    ) -> requests.Response:
        """
        Execute HTTP request with exponential backoff retry for transient errors.

        Args:
            method: HTTP method (GET, PUT, DELETE)
            url: Request URL
            deadline: Optional wall-clock time after which no retry is attempted
            **kwargs: Additional request parameters

        Returns:
            The final response

        Raises:
            ProviderError: If max retries exceeded or no token could be acquired
            OperationTimeoutError: If the next retry would pass ``deadline``
        """
        if method.upper() not in ("GET", "PUT", "DELETE"):
            raise ValueError(f"Unsupported method: {method}")

        last_error = None

        for attempt in range(self.max_retries + 1):
            request_timeout = self.timeout_s
            if deadline is not None:
                request_timeout = min(self.timeout_s, max(deadline - time.time(), 1.0))
            try:
                resp = self.session.request(
                    method.upper(),
                    url,
                    headers=self._headers(),
                    timeout=request_timeout,
                    **kwargs,
                )
            except requests.RequestException as e:
                delay = self._calculate_delay(attempt)
                last_error = str(e)
                self._check_deadline(deadline, delay, last_error)
                logger.warning(
                    f"Request error: {e}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                time.sleep(delay)
                continue

            if resp.status_code in self.RETRYABLE_STATUS_CODES:
                delay = self._calculate_delay(attempt, resp)
                error_info = self._error_message(resp)
                last_error = f"HTTP {resp.status_code}: {error_info or resp.text[:200]}"
                self._check_deadline(deadline, delay, last_error)
                logger.warning(
                    f"Retryable error {resp.status_code} ({error_info}), attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                time.sleep(delay)
                continue

            return resp

        raise ProviderError(f"Max retries exceeded. Last error: {last_error}")

    @staticmethod
    def _check_deadline(deadline: Optional[float], delay: float, last_error: str) -> None:
        if deadline is not None and time.time() + delay >= deadline:
            raise OperationTimeoutError(
                f"Deadline reached while retrying. Last error: {last_error}"
            )

    @staticmethod
    def _decode(resp: requests.Response, description: str) -> Dict[str, Any]:
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(
                f"{description}: response is not valid JSON ({e})", resp.status_code
            ) from e

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            return (resp.json().get("error") or {}).get("message", "")
        except (ValueError, AttributeError):
            return ""

    def _calculate_delay(self, attempt: int, resp=None) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Args:
            attempt: Current attempt number
            resp: Optional response object (to check Retry-After header)

        Returns:
            Delay in seconds
        """
        if resp is not None and "Retry-After" in resp.headers:
            try:
                return float(resp.headers["Retry-After"])
            except ValueError:
                pass

        delay = self.base_delay * (2**attempt)
        jitter = random.uniform(0, delay * 0.2)
        return min(delay + jitter, 180.0)

    def _params(self) -> Dict[str, str]:
        return {"api-version": self.API_VERSION}

    def _get_json(
        self, url: str, description: str, deadline: Optional[float] = None
    ) -> Dict[str, Any]:
        resp = self._request_with_retry(
            "GET", url, deadline=deadline, params=self._params()
        )
        if resp.status_code != 200:
            raise ProviderError(
                f"Get {description} failed ({resp.status_code}): {resp.text}",
                resp.status_code,
            )
        return self._decode(resp, description)

    def get(self, group: str, name: str) -> Dict[str, Any]:
        """
        Get the descriptor of a resource.

        Args:
            group: Resource group name
            name: Resource name

        Returns:
            Resource descriptor as dictionary

        Raises:
            ProviderError: If API call fails
        """
        return self._get_json(self._url(self.resource_path(group, name)), name)

    def create_or_update(
        self, group: str, name: str, body: Dict[str, Any]
    ) -> Completion:
        """
        Submit a create/update request for a resource.

        Args:
            group: Resource group name
            name: Resource name
            body: ARM resource definition

        Returns:
            Completion to wait on

        Raises:
            ProviderError: If the request is rejected
        """
        url = self._url(self.resource_path(group, name))
        resp = self._request_with_retry("PUT", url, params=self._params(), json=body)
        if resp.status_code not in (200, 201):
            raise ProviderError(
                f"Create/update {name} failed ({resp.status_code}): {resp.text}",
                resp.status_code,
            )
        poll_url = resp.headers.get("Azure-AsyncOperation")
        if poll_url:
            logger.info(f"Create/update of {name} accepted, polling for completion")
            return ArmOperation(
                self, f"create/update {name}", poll_url, "async", resource_url=url
            )
        return CompletedOperation(
            OperationResult(value=self._decode(resp, f"create/update {name}"))
        )

    def delete(self, group: str, name: str) -> Completion:
        """
        Submit a delete request for a resource.

        Args:
            group: Resource group name
            name: Resource name

        Returns:
            Completion to wait on

        Raises:
            ProviderError: If the request is rejected
        """
        url = self._url(self.resource_path(group, name))
        resp = self._request_with_retry("DELETE", url, params=self._params())
        if resp.status_code in (200, 204):
            return CompletedOperation(OperationResult(value={}))
        if resp.status_code != 202:
            raise ProviderError(
                f"Delete {name} failed ({resp.status_code}): {resp.text}",
                resp.status_code,
            )
        if resp.headers.get("Azure-AsyncOperation"):
            return ArmOperation(
                self, f"delete {name}", resp.headers["Azure-AsyncOperation"], "async"
            )
        if resp.headers.get("Location"):
            return ArmOperation(
                self, f"delete {name}", resp.headers["Location"], "location"
            )
        raise ProviderError(f"Delete {name} accepted without a polling URL", 202)


class ScaleSetClient(ArmRestClient):
    """Client for Microsoft.Compute virtual machine scale sets."""

    API_VERSION = "2023-09-01"

    def resource_path(self, group: str, name: str) -> str:
        return (
            f"subscriptions/{self.subscription_id}/resourceGroups/{group}"
            f"/providers/Microsoft.Compute/virtualMachineScaleSets/{name}"
        )


class ResourceGroupClient(ArmRestClient):
    """Client for resource groups; the group is the resource itself."""

    API_VERSION = "2021-04-01"

    def resource_path(self, group: str, name: str) -> str:
        return f"subscriptions/{self.subscription_id}/resourcegroups/{name}"
