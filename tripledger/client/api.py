import json
import logging
import os
from typing import Any, Callable, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"


class TokenStore:
    """
    Bearer token kept in a small JSON file so it outlives the process.
    Read before every request; whoever writes last wins.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self) -> Optional[str]:
        return self._load().get(TOKEN_KEY) or None

    def set(self, token: str) -> None:
        data = self._load()
        data[TOKEN_KEY] = token
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def clear(self) -> None:
        data = self._load()
        if TOKEN_KEY not in data:
            return
        del data[TOKEN_KEY]
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)


class ApiError(Exception):
    """Non-2xx response. The message is '<status>: <body>', shown to the user as-is."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"{status}: {body}")


class NetworkError(ApiError):
    """No response came back, e.g. the connection was refused or timed out. Status is 0."""

    def __init__(self, message: str):
        self.status = 0
        self.body = message
        Exception.__init__(self, message)


class ApiClient:
    def __init__(self, tokens: TokenStore, base_url: str = "", http: httpx.Client = None, timeout: float = 30.0):
        self.tokens = tokens
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {}
        token = self.tokens.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if not response.is_success:
            raise ApiError(response.status_code, response.text or response.reason_phrase)

    def request(self, method: str, url: str, data: Any = None, files: Any = None) -> httpx.Response:
        """
        Sends one request. With ``files`` (even an empty mapping) the body goes out
        as a form with ``data`` as its fields; otherwise ``data`` is sent as JSON.
        """
        kwargs = {"headers": self._headers()}
        if files is not None:
            kwargs["data"] = data
            kwargs["files"] = files
        elif data is not None:
            kwargs["json"] = data

        response = self._send(method, url, **kwargs)
        self._raise_for_status(response)
        return response

    def query(self, url: str, on_401: str = "throw", params: Dict[str, Any] = None):
        response = self._send("GET", url, params=params, headers=self._headers())
        if on_401 == "return_null" and response.status_code == 401:
            return None
        self._raise_for_status(response)
        return response.json()

    def close(self) -> None:
        self.http.close()


class QueryCache:
    """Results per query key. Entries never go stale on their own; only invalidate() drops them."""

    def __init__(self):
        self._entries: Dict[str, Any] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, default=None):
        return self._entries.get(key, default)

    def fetch(self, key: str, loader: Callable[[], Any]):
        if key not in self._entries:
            self._entries[key] = loader()
        return self._entries[key]

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()
