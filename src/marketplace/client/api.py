"""Async HTTP client for the engine's REST surface with optimistic updates."""

from typing import Any
from uuid import UUID, uuid4

import httpx

from src.marketplace.client.optimistic import OptimisticStore
from src.marketplace.core.logging import get_logger

logger = get_logger(__name__)


class EngineAPIError(RuntimeError):
    """Error response from the engine, carrying its machine-readable code."""

    def __init__(self, status_code: int, code: str, detail: Any, request_id: str | None):
        super().__init__(f"{status_code} {code}: {detail}")
        self.status_code = status_code
        self.code = code
        self.detail = detail
        self.request_id = request_id


class EngineClient:
    """Thin client over ``/api/v1``.

    Every mutation is sent with an ``X-Request-ID`` that doubles as the key of
    its tentative patch in the store, so server logs and the local draft share
    one id. Pass a pre-configured ``httpx.AsyncClient`` to control transport
    and base URL.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str | None = None,
        store: OptimisticStore | None = None,
        prefix: str = "/api/v1",
    ):
        self.http = http
        self.store = store or OptimisticStore()
        self.prefix = prefix.rstrip("/")
        self.headers: dict[str, str] = {}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> Any:
        headers = dict(self.headers)
        if request_id:
            headers["X-Request-ID"] = request_id
        resp = await self.http.request(
            method, f"{self.prefix}{path}", json=json_body, headers=headers
        )
        if resp.is_error:
            try:
                body = resp.json()
            except ValueError:
                body = {"detail": resp.text}
            raise EngineAPIError(
                resp.status_code,
                body.get("code", "HTTP_ERROR"),
                body.get("detail"),
                body.get("request_id") or request_id,
            )
        if not resp.content:
            return None
        return resp.json()

    async def _mutate(
        self,
        method: str,
        path: str,
        entity_key: str,
        patch: dict[str, Any],
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Apply ``patch`` locally, send the request, then confirm or revert."""
        request_id = self.store.apply(entity_key, patch, request_id=uuid4().hex)
        try:
            result = await self._request(
                method, path, json_body=json_body, request_id=request_id
            )
        except (EngineAPIError, httpx.HTTPError) as e:
            self.store.reject(request_id)
            logger.info(
                "Optimistic update reverted",
                entity=entity_key,
                request_id=request_id,
                error=str(e),
            )
            raise
        self.store.confirm(request_id, result if isinstance(result, dict) else None)
        return result

    # --- Reads ---

    async def get_milestone(self, milestone_id: UUID | str) -> dict[str, Any]:
        data = await self._request("GET", f"/milestones/{milestone_id}")
        self.store.load(f"milestone:{milestone_id}", data)
        return data  # type: ignore[no-any-return]

    async def get_application(self, application_id: UUID | str) -> dict[str, Any]:
        data = await self._request("GET", f"/applications/{application_id}")
        self.store.load(f"application:{application_id}", data)
        return data  # type: ignore[no-any-return]

    # --- Mutations ---

    async def milestone_action(
        self,
        milestone_id: UUID | str,
        action: str,
        *,
        tentative_status: str | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        """Run a lifecycle action such as ``fund-escrow`` or ``approve-release``.

        The expected version is taken from the last server truth, so a stale
        local copy fails with ``CONFLICT`` instead of overwriting.
        """
        key = f"milestone:{milestone_id}"
        truth = self.store.truth(key) or {}
        body: dict[str, Any] = {"expectedVersion": truth.get("version")}
        if message is not None:
            body["message"] = message
        patch = {"status": tentative_status} if tentative_status else {}
        return await self._mutate(  # type: ignore[no-any-return]
            "POST", f"/milestones/{milestone_id}/{action}", key, patch, body
        )

    async def application_action(
        self,
        application_id: UUID | str,
        action: str,
        *,
        tentative_status: str | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run a screening action such as ``shortlist`` or ``accept-offer``."""
        key = f"application:{application_id}"
        truth = self.store.truth(key) or {}
        payload = {"expectedVersion": truth.get("version"), **(body or {})}
        patch = {"status": tentative_status} if tentative_status else {}
        return await self._mutate(  # type: ignore[no-any-return]
            "POST", f"/applications/{application_id}/{action}", key, patch, payload
        )

    async def reassign(
        self,
        project_id: UUID | str,
        current_application_id: UUID | str,
        new_application_id: UUID | str,
        reject_previous: bool = False,
    ) -> list[dict[str, Any]]:
        """Move a project's assignment in one server-side operation."""
        current_key = f"application:{current_application_id}"
        new_key = f"application:{new_application_id}"
        current_truth = self.store.truth(current_key) or {}
        displaced_status = "REJECTED" if reject_previous else "ACCEPTED"
        first = self.store.apply(current_key, {"status": displaced_status})
        second = self.store.apply(new_key, {"status": "ASSIGNED"})
        try:
            result = await self._request(
                "POST",
                f"/projects/{project_id}/applications/{current_application_id}/reassign",
                json_body={
                    "newApplicationId": str(new_application_id),
                    "rejectPrevious": reject_previous,
                    "expectedVersion": current_truth.get("version"),
                },
                request_id=first,
            )
        except (EngineAPIError, httpx.HTTPError):
            self.store.reject(first)
            self.store.reject(second)
            raise
        if len(result) == 1:
            # The old assignee had already left; nothing was displaced
            self.store.reject(first)
            self.store.confirm(second, result[0])
        else:
            displaced, assigned = result
            self.store.confirm(first, displaced)
            self.store.confirm(second, assigned)
        return result  # type: ignore[no-any-return]
