"""MirrorStoreSupabase: Mirror store in a Supabase (PostgREST) table."""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from .MirrorStore import MIRROR_TABLE, MirrorRecord, MirrorStore, MirrorStoreError

logger = logging.getLogger(__name__)


class SupabaseMirrorStore(MirrorStore):
    """Mirror store using the Supabase REST API.

    Upserts rely on the table's unique constraint on ``chain_bet_id`` and
    PostgREST's ``merge-duplicates`` resolution. A bulk request is applied
    in a single statement, so a failed batch leaves no partial rows.

    :ivar url: Supabase project URL.
    :ivar timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the store.

        :param url: Supabase project URL (e.g., "https://xyz.supabase.co").
        :param service_key: Service-role API key.
        :param timeout: Request timeout in seconds.
        :param client: Optional preconfigured client.
        """
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }
        self._client = client

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{MIRROR_TABLE}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def upsert_records(self, records: Sequence[MirrorRecord]) -> int:
        if not records:
            return 0

        headers = {
            **self._headers,
            "Prefer": "resolution=merge-duplicates,return=minimal",
        }
        try:
            response = await self._get_client().post(
                self.endpoint,
                params={"on_conflict": "chain_bet_id"},
                json=[r.to_row() for r in records],
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise MirrorStoreError(f"Supabase upsert failed: {e}") from e

        if not response.is_success:
            raise MirrorStoreError(
                f"Supabase upsert failed: HTTP {response.status_code}: {response.text[:200]}"
            )

        logger.debug(f"Upserted {len(records)} records into {MIRROR_TABLE}")
        return len(records)

    async def get_records(self, round_id: int | None = None) -> list[MirrorRecord]:
        params = {"select": "*", "order": "chain_bet_id.asc"}
        if round_id is not None:
            params["round_id"] = f"eq.{round_id}"

        try:
            response = await self._get_client().get(
                self.endpoint, params=params, headers=self._headers, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            raise MirrorStoreError(f"Supabase read failed: {e}") from e

        if not response.is_success:
            raise MirrorStoreError(
                f"Supabase read failed: HTTP {response.status_code}: {response.text[:200]}"
            )

        return [MirrorRecord.from_row(row) for row in response.json()]
