from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_update(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/update", json=payload)

    def get_series(self, bin_id: str, hours: float) -> Dict[str, Any]:
        return self._request("GET", f"/series/{bin_id}", params={"hours": hours})

    def predict(self, bin_id: str, hours: int, method: str) -> Dict[str, Any]:
        return self._request(
            "GET", f"/predict/{bin_id}", params={"hours": hours, "method": method}
        )

    def pickups(self, horizon_hours: Optional[float] = None) -> Dict[str, Any]:
        params = {"horizon_hours": horizon_hours} if horizon_hours is not None else None
        return self._request("GET", "/pickups", params=params)

    def acknowledge(self, event_id: str) -> Dict[str, Any]:
        return self._request("POST", "/ack", json={"id": event_id})

    def export_csv(self) -> str:
        try:
            response = self._client.get("/export.csv")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.text

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        payload = response.json()
        if not isinstance(payload, dict):
            raise typer.BadParameter(f"Unexpected response payload from {url}.")
        return payload

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
