"""
Binary asset store client (Cloudinary REST upload API).
"""
import hashlib
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any

import httpx

from core.config import (
    CLOUDINARY_CLOUD_NAME,
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_BASE_URL,
    ASSET_ROOT_FOLDER,
    ASSET_UPLOAD_TIMEOUT,
)
from core.errors import UpstreamError


@dataclass
class UploadedFile:
    """A file received from a client, read fully into memory."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class StoredAsset:
    """What the asset store hands back for an upload."""
    url: str
    public_id: str
    format: Optional[str] = None
    size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None


class AssetStoreClient:
    """Client for uploading and deleting media in the asset store."""

    def __init__(
        self,
        cloud_name: Optional[str] = CLOUDINARY_CLOUD_NAME,
        api_key: Optional[str] = CLOUDINARY_API_KEY,
        api_secret: Optional[str] = CLOUDINARY_API_SECRET,
        base_url: str = CLOUDINARY_BASE_URL,
        root_folder: str = ASSET_ROOT_FOLDER,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url
        self.root_folder = root_folder
        self.client = httpx.Client(timeout=ASSET_UPLOAD_TIMEOUT)  # videos can be large

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _sign(self, params: Dict[str, Any]) -> str:
        """SHA-1 over the alphabetically sorted parameters followed by the secret."""
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode()).hexdigest()

    def _signed_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {key: value for key, value in params.items() if value is not None}
        params["timestamp"] = int(time.time())
        signed = dict(params)
        signed["signature"] = self._sign(params)
        signed["api_key"] = self.api_key
        return signed

    def _post(self, resource_type: str, action: str, data: Dict[str, Any], files=None) -> Dict[str, Any]:
        if not self.is_configured:
            raise UpstreamError("Asset store is not configured")

        url = f"{self.base_url}/{self.cloud_name}/{resource_type}/{action}"
        try:
            response = self.client.post(url, data=data, files=files)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise UpstreamError(f"Asset store error: {str(e)}")

    def upload(
        self,
        content: bytes,
        filename: str,
        folder: str,
        resource_type: str = "auto",
        transformation: Optional[str] = None,
    ) -> StoredAsset:
        """Upload raw bytes into ``<root>/<folder>``."""
        data = self._signed_params({
            "folder": f"{self.root_folder}/{folder}",
            "transformation": transformation,
        })
        result = self._post(resource_type, "upload", data, files={"file": (filename, content)})

        return StoredAsset(
            url=result.get("secure_url") or result.get("url", ""),
            public_id=result.get("public_id", ""),
            format=result.get("format"),
            size=result.get("bytes"),
            width=result.get("width"),
            height=result.get("height"),
            duration=result.get("duration"),
        )

    def delete(self, public_id: str, resource_type: str = "image") -> Dict[str, Any]:
        data = self._signed_params({"public_id": public_id})
        return self._post(resource_type, "destroy", data)


# Global asset store instance
asset_store = AssetStoreClient()
