"""Service URL / header construction."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, urlencode

from . import __version__

_HTTPS = "https://"
_WSS = "wss://"
_BASE_DOMAIN = ".apprapp.cloud.ibm.com"
_SERVICE = "/apprapp"
_WS_PATH = "/wsfeature"


@dataclass(frozen=True)
class UrlBuilder:
    """Builds REST, IAM and websocket URLs for one service instance.

    override_server_host replaces the regional host; it is meant for testing
    against non-production deployments.
    """

    region: str
    guid: str
    override_server_host: str | None = None

    @property
    def base_service_url(self) -> str:
        if self.override_server_host:
            return self.override_server_host
        return f"{_HTTPS}{self.region}{_BASE_DOMAIN}"

    @property
    def iam_url(self) -> str:
        if self.override_server_host:
            return f"{_HTTPS}iam.test.cloud.ibm.com"
        return f"{_HTTPS}iam.cloud.ibm.com"

    def _host(self) -> str:
        if self.override_server_host:
            return self.override_server_host.replace("https://", "").replace("http://", "")
        return f"{self.region}{_BASE_DOMAIN}"

    def config_url(self, collection_id: str, environment_id: str) -> str:
        """Full snapshot fetch URL."""
        base = self.base_service_url
        if "://" not in base:
            base = _HTTPS + base
        path = (
            f"{_SERVICE}/feature/v1/instances/{quote(self.guid, safe='')}"
            f"/collections/{quote(collection_id, safe='')}/config"
        )
        return f"{base.rstrip('/')}{path}?{urlencode({'environment_id': environment_id})}"

    def websocket_url(self, collection_id: str, environment_id: str) -> str:
        """Live update channel URL."""
        query = urlencode(
            {
                "instance_id": self.guid,
                "collection_id": collection_id,
                "environment_id": environment_id,
            }
        )
        return f"{_WSS}{self._host()}{_SERVICE}{_WS_PATH}?{query}"

    def headers(self, is_post: bool = False) -> dict[str, str]:
        """Common request headers."""
        headers = {
            "Accept": "application/json",
            "User-Agent": f"appconfiguration-python-sdk/{__version__}",
        }
        if is_post:
            headers["Content-Type"] = "application/json"
        return headers
