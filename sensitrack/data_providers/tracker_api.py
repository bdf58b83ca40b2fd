from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from sensitrack.config import settings
from sensitrack.errors import StoreReadFailed, StoreWriteFailed
from sensitrack.notes import clean_note
from sensitrack.schemas import (
    EliminationTest,
    IngredientReaction,
    ProductNote,
    ProductReaction,
    Reaction,
    WishlistItem,
)

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Your session has expired. Please log in again."


class TrackerApiClient:
    """Bearer-token client for the tracker backend.

    The token decides the user, so every row the Api* stores return is stamped
    with the caller's `user_id` rather than the backend's own `userID`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else settings.tracker_api_url).rstrip("/")
        self.token = (token if token is not None else settings.tracker_api_token).strip()
        self.timeout = settings.request_timeout_seconds if timeout is None else timeout
        self.transport = transport
        self.last_status: int | None = None

    async def request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        error_cls = StoreReadFailed if method == "GET" else StoreWriteFailed
        headers = {"User-Agent": "sensitrack/0.1", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=self.transport,
        ) as client:
            try:
                response = await client.request(method, path, json=json)
                self.last_status = response.status_code
                logger.debug("tracker api %s %s status=%s", method, path, self.last_status)
                if response.status_code == 401:
                    raise error_cls(f"{method} {path} HTTP 401", user_message=SESSION_EXPIRED)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                raise error_cls(f"{method} {path} HTTP {exc.response.status_code}: {_error_body(exc.response)}") from exc
            except httpx.HTTPError as exc:
                raise error_cls(f"{method} {path} network error: {exc.__class__.__name__}") from exc
            except ValueError as exc:
                raise error_cls(f"{method} {path} returned a non-JSON body") from exc


def _error_body(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return (response.text or "")[:120].replace("\n", " ")
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return str(payload)[:120]


def _as_list(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


class ApiTestStore:
    def __init__(self, client: TrackerApiClient) -> None:
        self.client = client

    async def list_for_user(self, user_id: str) -> list[EliminationTest]:
        payload = await self.client.request("GET", "/tests")
        return [self._to_test(item, user_id) for item in _as_list(payload)]

    async def find_active_test(self, user_id: str) -> Optional[EliminationTest]:
        # The backend only blocks duplicates per product; two clients racing
        # here can still both create a test.
        for test in await self.list_for_user(user_id):
            if not test.completed:
                return test
        return None

    async def find_by_id(self, user_id: str, test_id: str) -> Optional[EliminationTest]:
        for test in await self.list_for_user(user_id):
            if test.id == test_id:
                return test
        return None

    async def create(self, test: EliminationTest) -> EliminationTest:
        payload = await self.client.request("POST", "/tests", json={"itemID": test.product_code})
        return self._to_test(payload, test.user_id)

    async def update(self, user_id: str, test_id: str, patch: dict[str, Any]) -> EliminationTest:
        if not patch.get("completed"):
            raise StoreWriteFailed(f"backend only supports completing tests, got patch {sorted(patch)}")
        result = patch.get("result")
        body = {"result": Reaction(result).value} if result else {}
        payload = await self.client.request("PUT", f"/tests/{quote(test_id, safe='')}", json=body)
        return self._to_test(payload, user_id)

    @staticmethod
    def _to_test(item: dict[str, Any], user_id: str) -> EliminationTest:
        return EliminationTest(
            id=str(item.get("_id", "")),
            user_id=user_id,
            product_code=str(item.get("itemID", "")),
            start_date=item.get("startDate"),
            finish_date=item.get("finishDate"),
            completed=bool(item.get("completed", False)),
            result=item.get("result") or None,
        )


class ApiProductReactionStore:
    def __init__(self, client: TrackerApiClient) -> None:
        self.client = client

    async def upsert(self, user_id: str, product_code: str, reaction: Reaction) -> ProductReaction:
        body = {"productID": product_code, "reaction": Reaction(reaction).value}
        payload = await self.client.request("POST", "/product-reactions", json=body)
        return self._to_reaction(payload, user_id)

    async def delete(self, user_id: str, product_code: str) -> None:
        await self.client.request("DELETE", f"/product-reactions/{quote(product_code, safe='')}")

    async def find_all(self, user_id: str) -> list[ProductReaction]:
        payload = await self.client.request("GET", "/product-reactions")
        return [self._to_reaction(item, user_id) for item in _as_list(payload)]

    @staticmethod
    def _to_reaction(item: dict[str, Any], user_id: str) -> ProductReaction:
        return ProductReaction(
            user_id=user_id,
            product_code=str(item.get("productID", "")),
            reaction=item.get("reaction"),
            created_at=item.get("createdAt"),
            updated_at=item.get("updatedAt"),
        )


class ApiIngredientReactionStore:
    def __init__(self, client: TrackerApiClient) -> None:
        self.client = client

    async def upsert(self, user_id: str, ingredient_name: str, reaction: Reaction) -> IngredientReaction:
        body = {"ingredientName": ingredient_name.strip().lower(), "reaction": Reaction(reaction).value}
        payload = await self.client.request("POST", "/ingredient-reactions", json=body)
        return self._to_reaction(payload, user_id)

    async def delete(self, user_id: str, ingredient_name: str) -> None:
        name = quote(ingredient_name.strip().lower(), safe="")
        await self.client.request("DELETE", f"/ingredient-reactions/{name}")

    async def find_all(self, user_id: str) -> list[IngredientReaction]:
        payload = await self.client.request("GET", "/ingredient-reactions")
        return [self._to_reaction(item, user_id) for item in _as_list(payload)]

    @staticmethod
    def _to_reaction(item: dict[str, Any], user_id: str) -> IngredientReaction:
        return IngredientReaction(
            user_id=user_id,
            ingredient_name=str(item.get("ingredientName", "")),
            reaction=item.get("reaction"),
            created_at=item.get("createdAt"),
            updated_at=item.get("updatedAt"),
        )


class ApiWishlistStore:
    def __init__(self, client: TrackerApiClient) -> None:
        self.client = client

    async def add(self, user_id: str, product_code: str) -> WishlistItem:
        payload = await self.client.request("POST", "/wishlist", json={"productID": product_code})
        return self._to_item(payload, user_id)

    async def remove(self, user_id: str, item_id: str) -> None:
        await self.client.request("DELETE", f"/wishlist/{quote(item_id, safe='')}")

    async def find_all(self, user_id: str) -> list[WishlistItem]:
        payload = await self.client.request("GET", "/wishlist")
        return [self._to_item(item, user_id) for item in _as_list(payload)]

    @staticmethod
    def _to_item(item: dict[str, Any], user_id: str) -> WishlistItem:
        return WishlistItem(
            id=str(item.get("_id", "")),
            user_id=user_id,
            product_code=str(item.get("productID", "")),
            added_at=item.get("addedAt"),
        )


class ApiProductNoteStore:
    def __init__(self, client: TrackerApiClient) -> None:
        self.client = client

    async def add(self, user_id: str, product_code: str, note: str, rating: Optional[int] = None) -> ProductNote:
        text, rating = clean_note(note, rating)
        body: dict[str, Any] = {"productID": product_code, "note": text}
        if rating is not None:
            body["rating"] = rating
        payload = await self.client.request("POST", "/productnotes", json=body)
        return self._to_note(payload, user_id)

    async def update(self, user_id: str, note_id: str, note: str, rating: Optional[int] = None) -> ProductNote:
        text, rating = clean_note(note, rating)
        body: dict[str, Any] = {"note": text}
        if rating is not None:
            body["rating"] = rating
        payload = await self.client.request("PUT", f"/productnotes/{quote(note_id, safe='')}", json=body)
        return self._to_note(payload, user_id)

    async def find_all(self, user_id: str) -> list[ProductNote]:
        payload = await self.client.request("GET", "/productnotes")
        return [self._to_note(item, user_id) for item in _as_list(payload)]

    @staticmethod
    def _to_note(item: dict[str, Any], user_id: str) -> ProductNote:
        return ProductNote(
            id=str(item.get("_id", "")),
            user_id=user_id,
            product_code=str(item.get("productID", "")),
            note=str(item.get("note") or ""),
            rating=item.get("rating"),
            created_at=item.get("createdAt"),
            updated_at=item.get("updatedAt"),
        )
