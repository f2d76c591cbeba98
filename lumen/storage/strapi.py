from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from lumen.common.config import settings
from lumen.common.errors import ContentStoreError, InvalidQueryError

from .predicates import And, Contains, Equals, InSet, Not, Or, Predicate

log = logging.getLogger(__name__)

# Python-side field names that the CMS spells differently
FIELD_ALIASES = {
    "published_at": "publishedAt",
    "student_name": "studentName",
    "media_type": "mediaType",
}
_REVERSE_ALIASES = {v: k for k, v in FIELD_ALIASES.items()}


def _field_path(field: str) -> str:
    return "".join(f"[{FIELD_ALIASES.get(part, part)}]" for part in field.split("."))


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def lower_filters(predicate: Predicate, prefix: str = "filters") -> list[tuple[str, str]]:
    """Lower a predicate tree to Strapi REST ``filters[...]`` query parameters."""
    out: list[tuple[str, str]] = []
    _lower(predicate, prefix, out)
    return out


def _lower(predicate: Predicate, prefix: str, out: list[tuple[str, str]]) -> None:
    if isinstance(predicate, (And, Or)):
        if not predicate.items:
            # ids are never null: match everything / nothing
            op = "$notNull" if isinstance(predicate, And) else "$null"
            out.append((f"{prefix}[id][{op}]", "true"))
            return
        op = "$and" if isinstance(predicate, And) else "$or"
        for i, item in enumerate(predicate.items):
            _lower(item, f"{prefix}[{op}][{i}]", out)
        return
    if isinstance(predicate, Not):
        _lower(predicate.item, f"{prefix}[$not]", out)
        return

    path = prefix + _field_path(predicate.field)
    if isinstance(predicate, Equals):
        if predicate.value is None:
            out.append((f"{path}[$null]", "true"))
        else:
            out.append((f"{path}[$eq]", _scalar(predicate.value)))
    elif isinstance(predicate, Contains):
        out.append((f"{path}[$containsi]", predicate.value))
    elif isinstance(predicate, InSet):
        if not predicate.values:
            out.append((f"{prefix}[id][$null]", "true"))
        for i, value in enumerate(predicate.values):
            out.append((f"{path}[$in][{i}]", _scalar(value)))
    else:
        raise InvalidQueryError(f"unsupported predicate: {predicate!r}")


def flatten_entity(node: Any) -> Any:
    """Unwrap ``data``/``attributes`` envelopes and restore Python field names."""
    if isinstance(node, list):
        return [flatten_entity(x) for x in node]
    if not isinstance(node, dict):
        return node
    if set(node) == {"data"}:
        return flatten_entity(node["data"])
    if isinstance(node.get("attributes"), dict):
        node = {"id": node.get("id"), **node["attributes"]}
    return {_REVERSE_ALIASES.get(k, k): flatten_entity(v) for k, v in node.items()}


class StrapiContentStore:
    """Content store that queries a Strapi CMS over its REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        tok = token if token is not None else settings.strapi_token
        if tok:
            headers["Authorization"] = f"Bearer {tok}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.strapi_url,
            headers=headers,
            timeout=httpx.Timeout(settings.http_timeout_seconds),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def find_many(
        self,
        collection: str,
        predicate: Predicate,
        *,
        limit: int,
        populate: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        params = lower_filters(predicate)
        params.extend((f"populate[{i}]", name) for i, name in enumerate(populate))
        params.append(("pagination[limit]", str(limit)))
        path = f"/api/{collection.replace('_', '-')}"

        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as exc:
            raise ContentStoreError(f"{collection} query failed: {exc}", collection=collection) from exc
        except ValueError as exc:
            raise ContentStoreError(f"{collection} returned invalid JSON", collection=collection) from exc

        items = flatten_entity(payload.get("data") or [])
        log.debug("store_query", extra={"category": collection, "hits": len(items)})
        return items
