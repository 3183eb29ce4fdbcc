import logging
from typing import Optional, Dict, Any

import httpx

from socialhub.config import settings
from socialhub.errors import UpstreamError

logger = logging.getLogger(__name__)

INFERENCE_URL = "https://api-inference.huggingface.co/models"
PROVIDER = "Hugging Face"


class HFClient:
    def __init__(self, api_token: Optional[str] = None, http: Optional[httpx.Client] = None, timeout: float = 60.0):
        self.api_token = api_token or settings.hf_api_token
        if not self.api_token:
            raise RuntimeError("HF_API_TOKEN is not set. Put it in .env or set it in the environment.")
        self.headers = {"Authorization": f"Bearer {self.api_token}"}
        self.client = http or httpx.Client(timeout=timeout)

    def text_generation(self, model: str, inputs: str, params: Optional[Dict[str, Any]] = None) -> str:
        url = f"{INFERENCE_URL}/{model}"
        payload: Dict[str, Any] = {"inputs": inputs}
        if params:
            payload["parameters"] = params
        try:
            r = self.client.post(url, headers=self.headers, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Could not reach Hugging Face: {e}", provider=PROVIDER) from e
        if r.status_code >= 400:
            raise UpstreamError(
                f"HuggingFace API error {r.status_code}",
                provider=PROVIDER,
                provider_status=r.status_code,
                body=r.text[:500],
            )
        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamError("Unexpected response from Hugging Face", provider=PROVIDER, body=r.text[:500]) from e

        # Handle common response shapes
        if isinstance(data, list) and data and isinstance(data[0], dict):
            data = data[0]
        if isinstance(data, dict):
            for key in ("generated_text", "summary_text"):
                if isinstance(data.get(key), str):
                    return data[key]
        raise UpstreamError("Unexpected response from Hugging Face", provider=PROVIDER, body=str(data)[:500])
