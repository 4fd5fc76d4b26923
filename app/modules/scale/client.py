# app/modules/scale/client.py
import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)


class ScaleClient:
    """Cliente del servidor HTTP de la balanza (GET /lectura)"""

    def __init__(self, base_url: str, timeout: float = 3.0, session: requests.Session = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def reading_url(self) -> str:
        return f"{self.base_url}/lectura"

    def read(self) -> Dict[str, Any]:
        """Pedir la lectura actual; falla con requests.RequestException"""
        response = self.session.get(
            self.reading_url,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()
