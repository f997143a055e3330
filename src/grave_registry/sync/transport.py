from typing import Any, Dict, Optional

import requests

from ..errors import TransportError
from ..logging import get_logger


LOG = get_logger("sync-transport")


class WebhookTransport:
    """Thin requests wrapper posting batches to the spreadsheet webhook.

    Only network-level problems raise (as TransportError). The HTTP status is
    reported back to the caller but never turned into an error.
    """

    def __init__(
        self,
        *,
        timeout: int = 30,
        verify_tls: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = int(timeout)
        self.verify = bool(verify_tls)
        self.s = session or requests.Session()

    def post(self, url: str, content_type: str, body: str) -> Dict[str, Any]:
        LOG.info(f"POST batch to webhook ({len(body)} bytes, content-type={content_type})")
        try:
            r = self.s.post(
                url,
                data=body.encode("utf-8"),
                headers={"Content-Type": content_type},
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as e:
            LOG.error(f"POST to webhook failed: {e}")
            raise TransportError(str(e)) from e
        preview = (r.text or "")[:200]
        LOG.debug(f"Webhook answered HTTP {r.status_code}: {preview!r}")
        if r.status_code >= 400:
            LOG.warning(f"Webhook returned HTTP {r.status_code}; batch is still considered delivered")
        return {"status_code": r.status_code, "text": preview}


def probe_connectivity(url: str, *, timeout: float = 5.0, session: Optional[requests.Session] = None) -> bool:
    """Return True when a HEAD request to `url` completes, whatever its status."""
    client = session or requests
    try:
        client.head(url, timeout=timeout, allow_redirects=False)
    except requests.RequestException as e:
        LOG.info(f"Connectivity probe failed: {e}")
        return False
    return True
