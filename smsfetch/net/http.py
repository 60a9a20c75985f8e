"""HTTP session factory for the single getSMS request."""

from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter

from smsfetch import __version__


def api_session(user_agent: str | None = None) -> requests.Session:
    """Create a requests session with retries disabled."""

    session = requests.Session()
    adapter = HTTPAdapter(max_retries=0)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers["User-Agent"] = user_agent or f"voipms-sms-fetch/{__version__}"
    return session
