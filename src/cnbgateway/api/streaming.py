"""Byte-for-byte relay of upstream SSE streams."""
import httpx

from ..utils.logging import log_event

SSE_HEADERS = {
    "Cache-Control": "no-cache",
}


def relay_stream(upstream: httpx.Response, request_id: str | None = None):
    """Yield raw upstream chunks, closing the upstream response at the end.

    Chunks are not parsed. Content encodings are undone by httpx, and the
    Content-Encoding header is not forwarded.
    """
    total = 0
    try:
        for chunk in upstream.iter_bytes():
            if chunk:
                total += len(chunk)
                yield chunk
    except httpx.HTTPError as exc:
        # Headers are already sent, so the stream just ends early.
        log_event(40, "stream_relay_error", request_id=request_id, error=str(exc), bytes=total)
    finally:
        upstream.close()
        log_event(20, "stream_relay_done", request_id=request_id, bytes=total)
