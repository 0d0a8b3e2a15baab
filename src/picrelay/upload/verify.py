"""Optional reachability check of an uploaded URL.

An unreachable URL never fails a relay; the upload already happened and
the link is still written into the document.  The caller only receives
a :class:`~picrelay.models.RelayWarning` to surface.
"""

from __future__ import annotations

import httpx

from picrelay.models import RelayWarning
from picrelay.observability import get_logger

log = get_logger("picrelay.upload.verify")

DEFAULT_VERIFY_TIMEOUT = 10.0

# Some image hosts refuse HEAD but serve GET; the object exists.
_HEAD_NOT_ALLOWED = 405


async def verify_remote_url(
    url: str,
    timeout: float = DEFAULT_VERIFY_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> RelayWarning | None:
    """Issue ``HEAD url`` and return a warning if it does not succeed.

    Parameters
    ----------
    url:
        The URL returned by the uploader.
    timeout:
        Request timeout in seconds.
    client:
        Reuse an existing client.  A short-lived one is created otherwise.

    Returns
    -------
    RelayWarning | None
        ``None`` when the URL answered with a non-error status.
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)
    try:
        response = await client.head(url)
    except httpx.HTTPError as exc:
        log.warning(
            "Remote URL not reachable",
            extra={"extra_fields": {"op": "verify", "url": url, "error": str(exc)}},
        )
        return RelayWarning(
            code="REMOTE_URL_UNREACHABLE",
            message=f"Uploaded, but {url} could not be reached: {exc}",
            context={"url": url, "error": type(exc).__name__},
        )
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code >= 400 and response.status_code != _HEAD_NOT_ALLOWED:
        log.warning(
            "Remote URL returned an error status",
            extra={"extra_fields": {"op": "verify", "url": url, "status": response.status_code}},
        )
        return RelayWarning(
            code="REMOTE_URL_ERROR_STATUS",
            message=f"Uploaded, but {url} answered HTTP {response.status_code}.",
            context={"url": url, "status": response.status_code},
        )
    return None
