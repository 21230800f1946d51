"""Async HTTP client for the person store."""
import os
import logging
from typing import Optional

import httpx

from .schemas import (
    CreateFamilyMemberRequest,
    CreateFamilyMemberResponse,
    FamilyMemberCreate,
    FamilyMemberOut,
    RelativeUpdate,
    UnionTokenOut,
)

logger = logging.getLogger(__name__)

STORE_URL = os.environ.get("KINTREE_STORE_URL", "http://localhost:3000")
STORE_TIMEOUT = float(os.environ.get("KINTREE_STORE_TIMEOUT", "10"))


class StoreUnavailable(RuntimeError):
    """The store could not be reached (connection refused, timeout, ...)."""


class StoreError(RuntimeError):
    """The store answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Store returned {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class PersonStoreClient:
    """
    Calls to the store are awaited, so a pending request never holds up
    other work on the event loop (the layout tick loop in particular).
    """

    def __init__(self, base_url: str = STORE_URL, timeout: float = STORE_TIMEOUT,
                 http: Optional[httpx.AsyncClient] = None):
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("Store request %s %s failed: %s", method, path, e)
            raise StoreUnavailable(f"Could not reach the family store: {e}") from e
        if resp.is_error:
            try:
                message = resp.json().get("detail", resp.text)
            except (ValueError, AttributeError):
                message = resp.text
            logger.warning("Store request %s %s returned %s: %s", method, path, resp.status_code, message)
            raise StoreError(resp.status_code, str(message))
        return resp

    async def list_members(self) -> list[FamilyMemberOut]:
        resp = await self._request("GET", "/family-members")
        return [FamilyMemberOut.model_validate(m) for m in resp.json()]

    async def create_member(self, new_member: FamilyMemberCreate, relative: RelativeUpdate) -> CreateFamilyMemberResponse:
        body = CreateFamilyMemberRequest(new_family_member=new_member, relative=relative)
        resp = await self._request(
            "POST", "/family-members",
            json=body.model_dump(mode="json", by_alias=True, exclude_unset=True),
        )
        return CreateFamilyMemberResponse.model_validate(resp.json())

    async def issue_union_token(self) -> int:
        resp = await self._request("POST", "/union-tokens")
        return UnionTokenOut.model_validate(resp.json()).token

    async def aclose(self):
        await self._http.aclose()
