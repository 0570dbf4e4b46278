from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the AirWatch API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        headers = {"Authorization": f"Bearer {config.token}"} if config.token else {}
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout, headers=headers)

    def close(self) -> None:
        self._client.close()

    def login(self, email: str, password: str) -> str:
        payload = self._request("POST", "/api/auth/login", json={"email": email, "password": password}).json()
        token = payload.get("token")
        if not isinstance(token, str):
            raise typer.BadParameter("Unexpected response payload when logging in.")
        return token

    def list_measurements(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("GET", "/api/measurements", params=_drop_empty(params)).json()

    def create_measurement(self, payload: Dict[str, Any]) -> str:
        body = self._request("POST", "/api/measurements", json=payload).json()
        measurement_id = body.get("id")
        if not isinstance(measurement_id, str):
            raise typer.BadParameter("Unexpected response payload when creating measurement.")
        return measurement_id

    def get_checks(self, measurement_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/measurements/{measurement_id}/checks").json()

    def dashboard(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("GET", "/api/measurements/bi", params=_drop_empty(params)).json()

    def download_report(self, params: Dict[str, Any]) -> bytes:
        return self._request("GET", "/api/measurements/report", params=_drop_empty(params)).content

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Optional[str] = None
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


def _drop_empty(params: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in params.items() if value not in (None, "")}
