"""Container healthcheck entrypoint."""
import os
import urllib.request
from urllib.error import URLError


def _resolve_port() -> int:
    """Resolve the gateway port from PORT, defaulting to 4000."""
    try:
        return int(os.getenv("PORT", "4000"))
    except ValueError:
        return 4000


def main() -> int:
    """Return exit code 0 if /healthz is reachable."""
    port = _resolve_port()
    try:
        urllib.request.urlopen(f"http://127.0.0.1:{port}/healthz", timeout=2)
        return 0
    except (URLError, OSError):
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
