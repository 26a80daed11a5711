"""
Supabase REST client.

Talks to the PostgREST endpoint of a Supabase project with the service
role key. Only the operations the chart service needs are implemented:
select, insert and upsert.
"""

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A storage request failed."""

    def __init__(self, table: str, message: str, status_code: int | None = None):
        super().__init__(f"{table}: {message}")
        self.table = table
        self.status_code = status_code


class SupabaseRestClient:
    """Minimal PostgREST client for a Supabase project."""

    def __init__(self, url: str, service_role_key: str, timeout: float = 15.0):
        """
        Initialize the client.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            service_role_key: Service role key used for both apikey and bearer auth
            timeout: Per-request timeout in seconds
        """
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        logger.info("Supabase REST client initialized", extra={"base_url": self.base_url})

    def _request(
        self,
        method: str,
        table: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self.session.request(
                method,
                f"{self.base_url}/{table}",
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreError(table, str(e)) from e

        if not response.ok:
            raise StoreError(table, response.text, status_code=response.status_code)
        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read rows from a table.

        Args:
            table: Table name
            columns: PostgREST column list
            filters: Column -> PostgREST filter expression, e.g. {"symbol": "eq.BTC"}
            order: Order expression, e.g. "timestamp.desc"
            limit: Maximum number of rows

        Returns:
            list: Matching rows
        """
        params: dict[str, Any] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        return self._request("GET", table, params=params)

    def insert(self, table: str, rows: list[dict[str, Any]] | dict[str, Any]) -> list[dict[str, Any]]:
        """Insert rows and return them as stored."""
        return self._request("POST", table, json_body=rows, prefer="return=representation")

    def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]] | dict[str, Any],
        on_conflict: str,
    ) -> list[dict[str, Any]]:
        """Insert rows, overwriting any that conflict on ``on_conflict`` columns."""
        return self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json_body=rows,
            prefer="resolution=merge-duplicates,return=representation",
        )
