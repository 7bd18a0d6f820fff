import os
import time
from typing import Any, Dict, List, Optional

import requests

DEFAULT_API_URL = os.getenv("STUDEX_API_URL", "http://127.0.0.1:8000")
DEFAULT_MODELS = ["gpt-4o", "gpt-4o-mini", "gpt-3.5-turbo"]

class ChatAPIError(Exception):
    """The chat backend could not produce an answer"""

class APIService:
    def __init__(self, base_url: str = DEFAULT_API_URL, timeout: float = 60.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._connection_verified = False

    def verify_connection(self, max_retries: int = 3) -> bool:
        for attempt in range(max_retries):
            try:
                timeout = 3 + (attempt * 2)
                response = self.get("/health", timeout=timeout)
                if response.status_code == 200:
                    self._connection_verified = True
                    return True
            except requests.RequestException:
                if attempt < max_retries - 1:
                    time.sleep(1)
        return False

    def is_connected(self) -> bool:
        """Check if connection is verified"""
        return self._connection_verified or self.verify_connection(max_retries=1)

    def get(self, endpoint: str, **kwargs) -> requests.Response:
        return self.session.get(f"{self.base_url}{endpoint}", **kwargs)

    def post(self, endpoint: str, **kwargs) -> requests.Response:
        return self.session.post(f"{self.base_url}{endpoint}", **kwargs)

    def get_models(self) -> List[str]:
        try:
            response = self.get("/models", timeout=5)
            if response.status_code == 200:
                return response.json()["models"] or DEFAULT_MODELS
        except (requests.RequestException, ValueError, KeyError):
            pass
        return DEFAULT_MODELS

    def send_chat(self, message: str, model: Optional[str] = None, context: Optional[str] = None,
                  attachments: Optional[List[Dict[str, Any]]] = None,
                  headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST a question to /chat and return the decoded answer envelope"""
        payload = {
            "message": message,
            "context": context,
            "model": model,
            "attachments": [
                {"name": att["name"], "type": att["type"], "content": att.get("content")}
                for att in (attachments or [])
            ],
        }

        try:
            response = self.post("/chat", json=payload, headers=headers or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise ChatAPIError(f"Connection error: {e}") from e

        if not response.ok:
            raise ChatAPIError(f"HTTP error! status: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ChatAPIError("Invalid response from chat API") from e

        if not isinstance(data, dict):
            raise ChatAPIError("Invalid response from chat API")
        if data.get("error"):
            raise ChatAPIError(str(data["error"]))
        if not isinstance(data.get("response"), str):
            raise ChatAPIError("Chat API returned no response text")

        return data
