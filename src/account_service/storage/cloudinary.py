"""Cloudinary image host over the Cloudinary upload REST API.

Requests are signed with the account's API secret: the signed parameters are
sorted, joined as ``key=value`` pairs with ``&``, suffixed with the secret and
SHA-1 hashed.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

from .base import BaseImageHost, ImageHostError


logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.cloudinary.com/v1_1"

_VERSION_SEGMENT = re.compile(r"^v\d+$")


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] != "")
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


def extract_public_id(url: str) -> Optional[str]:
    """
    Recover the public id from a delivery URL such as
    ``https://res.cloudinary.com/<cloud>/image/upload/v1712/folder/name.jpg``
    (giving ``folder/name``).
    """
    parsed = urlparse(url)
    if not parsed.netloc.endswith("cloudinary.com"):
        return None
    parts = [p for p in parsed.path.split("/") if p]
    if "upload" not in parts:
        return None
    rest = parts[parts.index("upload") + 1:]
    if rest and _VERSION_SEGMENT.match(rest[0]):
        rest = rest[1:]
    if not rest:
        return None
    stem, dot, _ext = rest[-1].rpartition(".")
    if dot:
        rest[-1] = stem
    return "/".join(rest)


class CloudinaryImageHost(BaseImageHost):
    """
    Uploads and deletes images on Cloudinary.

    A single `httpx.AsyncClient` is created at startup and shared by all
    requests; every call is bounded by the client timeout.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not (cloud_name and api_key and api_secret):
            raise ValueError("Cloudinary configuration missing")
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _endpoint(self, action: str) -> str:
        return f"{API_BASE_URL}/{self._cloud_name}/image/{action}"

    def _signed(self, params: Dict[str, str]) -> Dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        params["signature"] = sign_params(params, self._api_secret)
        params["api_key"] = self._api_key
        return params

    async def _post(self, action: str, data: Dict[str, str], files=None) -> dict:
        try:
            response = await self._client.post(self._endpoint(action), data=data, files=files)
        except httpx.HTTPError as exc:
            raise ImageHostError(f"Cloudinary {action} failed: {exc}") from exc
        if response.status_code != 200:
            raise ImageHostError(
                f"Cloudinary {action} returned {response.status_code}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ImageHostError(f"Cloudinary {action} returned invalid JSON") from exc

    async def upload(
        self,
        data: bytes,
        content_type: str,
        public_id: str,
        transformation: str | None = None,
    ) -> str:
        params = {"public_id": public_id, "overwrite": "false"}
        if transformation:
            params["transformation"] = transformation
        body = await self._post(
            "upload",
            self._signed(params),
            files={"file": (public_id.rsplit("/", 1)[-1], data, content_type)},
        )
        url = body.get("secure_url")
        if not url:
            raise ImageHostError("Cloudinary upload response has no secure_url")
        return url

    async def destroy(self, public_id: str) -> None:
        body = await self._post("destroy", self._signed({"public_id": public_id}))
        if body.get("result") not in ("ok", "not found"):
            raise ImageHostError(f"Cloudinary destroy of {public_id} returned {body}")
        logger.info("Deleted image %s from Cloudinary", public_id)

    def public_id_for(self, url: str) -> Optional[str]:
        return extract_public_id(url)

    async def close(self) -> None:
        await self._client.aclose()
