"""Clients for the remote repair-solution resolver."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
from pydantic import ValidationError

from core.exceptions import ResolverError
from core.logging import get_logger
from models.solution import SolutionPayload, SolutionRequest

logger = get_logger(__name__)


class BaseSolutionResolver(ABC):
    """Turns a fault code and vehicle into a repair solution."""

    @abstractmethod
    async def resolve(self, request: SolutionRequest) -> SolutionPayload:
        """Fetch a solution.

        Raises:
            ResolverError: No solution could be produced
        """


class RemoteSolutionResolver(BaseSolutionResolver):
    """Async HTTP client for the fetch-solution function.

    No retries are made here; a failed call surfaces as ``ResolverError``.
    """

    def __init__(self, base_url: str, timeout: int = 60, api_key: Optional[str] = None):
        """Initialize client with base URL and timeout.

        Args:
            base_url: Base URL of the functions endpoint
            timeout: Request timeout in seconds
            api_key: Optional bearer token sent with every request
        """
        self._base_url = base_url.rstrip('/')
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._api_key = api_key

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def resolve(self, request: SolutionRequest) -> SolutionPayload:
        payload = request.model_dump(by_alias=True)
        logger.info("Fetching solution",
                    dtc_code=request.dtc_code,
                    vehicle=f"{request.vehicle_brand} {request.vehicle_model} {request.vehicle_year}")

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(
                    f"{self._base_url}/fetch-solution",
                    json=payload,
                    headers=self._headers()
                ) as response:
                    data = await self._read_json(response)
                    status = response.status
        except asyncio.TimeoutError as e:
            raise ResolverError("Solution resolver timed out") from e
        except aiohttp.ClientError as e:
            raise ResolverError(f"Solution resolver unreachable: {e}") from e

        if status >= 400:
            raise ResolverError(data.get("error") or f"Solution resolver returned HTTP {status}",
                                status=status)
        if not data.get("success"):
            raise ResolverError(data.get("error") or "Solution resolver reported failure",
                                status=status)
        if not data.get("solution"):
            raise ResolverError("Solution resolver returned no solution", status=status)

        try:
            return SolutionPayload.model_validate(data["solution"])
        except ValidationError as e:
            raise ResolverError(f"Malformed solution payload: {e.error_count()} error(s)",
                                status=status) from e

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            data = await response.json(content_type=None)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
