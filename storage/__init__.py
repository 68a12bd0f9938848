"""Client for the off-chain content-addressed storage service.

Uploads JSON payloads, downloads content by identifier and runs the
signed-message exchange that releases a content decryption key to an
authorized wallet.
"""
import json
import logging
from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel

from config import get_storage_api_key, settings_conf, STORAGE_API_KEY_ENV

logger = logging.getLogger(__name__)

class StorageError(Exception):
    """Base exception for storage service errors"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(f"Storage error [{status_code}]: {message}" if status_code else message)

class StorageConfigError(StorageError):
    """Raised when the storage credential is not configured"""
    pass

class UploadError(StorageError):
    """Raised when a payload cannot be stored"""
    pass

class DownloadError(StorageError):
    """Raised when content cannot be retrieved"""
    pass

class DecryptionError(StorageError):
    """Raised when the decryption key exchange or decryption fails"""
    pass

class StoredContent(BaseModel):
    """What the storage service reports for an accepted upload."""
    name: str
    cid: str
    size: int

    @property
    def url(self) -> str:
        return gateway_url(self.cid)

def gateway_url(cid: str, base_url: Optional[str] = None) -> str:
    base_url = base_url or settings_conf['storage_gateway_url']
    return f"{base_url.rstrip('/')}/ipfs/{cid}"

class StorageClient:
    """Storage service client"""

    def __init__(
        self,
        api_url: Optional[str] = None,
        gateway_url: Optional[str] = None,
        encryption_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        """Initialize the client from settings, with per-argument overrides."""
        self.api_url = (api_url or settings_conf['storage_api_url']).rstrip('/')
        self.gateway_url = (gateway_url or settings_conf['storage_gateway_url']).rstrip('/')
        self.encryption_url = (encryption_url or settings_conf['storage_encryption_url']).rstrip('/')
        self.timeout = timeout or settings_conf['storage_timeout']
        self.session = session or requests.Session()

    def _request(self, error_cls, method: str, url: str, **kwargs) -> requests.Response:
        """Send a request, mapping transport and HTTP failures onto error_cls.

        Raises:
            error_cls: On timeout, connection failure or a non-2xx response
        """
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.Timeout as e:
            raise error_cls(f"Request timed out after {self.timeout} seconds") from e
        except requests.exceptions.ConnectionError as e:
            raise error_cls(f"Failed to connect to storage service at {url}") from e
        except requests.exceptions.HTTPError as e:
            raise error_cls(e.response.text or str(e), e.response.status_code) from e
        except requests.exceptions.RequestException as e:
            raise error_cls(f"Request failed: {str(e)}") from e

    def upload_json(
        self,
        data: Any,
        metadata: Dict[str, Any],
        api_key: Optional[str] = None
    ) -> StoredContent:
        """Store `{data, metadata}` as one JSON document.

        Args:
            data: Payload content
            metadata: Listing metadata stored alongside the payload
            api_key: Storage credential, read from the environment if omitted

        Returns:
            The stored content's name, identifier and size

        Raises:
            StorageConfigError: If no credential is configured
            UploadError: If the service rejects the upload
        """
        api_key = api_key or get_storage_api_key()
        if not api_key:
            raise StorageConfigError(f"Storage API key not configured ({STORAGE_API_KEY_ENV})")

        document = json.dumps({'data': data, 'metadata': metadata})
        name = f"{metadata.get('name') or 'dataset'}.json"

        response = self._request(
            UploadError,
            'POST',
            f"{self.api_url}/api/v0/add",
            headers={'Authorization': f"Bearer {api_key}"},
            files={'file': (name, document.encode('utf-8'), 'application/json')}
        )

        try:
            result = response.json()
            stored = StoredContent(
                name=result.get('Name', name),
                cid=result['Hash'],
                size=int(result.get('Size', len(document))),
            )
        except (KeyError, ValueError) as e:
            raise UploadError(f"Invalid response format: {str(e)}") from e

        logger.info(f"Stored {stored.name} as {stored.cid} ({stored.size} bytes)")
        return stored

    def download(self, cid: str) -> bytes:
        """Fetch raw content by identifier through the gateway."""
        response = self._request(DownloadError, 'GET', f"{self.gateway_url}/ipfs/{cid}")
        return response.content

    def get_auth_message(self, address: str) -> str:
        """Get the message a wallet must sign to prove it controls `address`.

        Raises:
            DecryptionError: If the message cannot be obtained
        """
        response = self._request(
            DecryptionError, 'GET', f"{self.encryption_url}/api/message/{address}"
        )
        try:
            result = response.json()
            # The service answers with a one-element list
            if isinstance(result, list):
                result = result[0]
            return result['message']
        except (KeyError, IndexError, ValueError) as e:
            raise DecryptionError(f"Invalid auth message response: {str(e)}") from e

    def fetch_encryption_key(self, cid: str, address: str, signature: str) -> bytes:
        """Exchange a signed auth message for the content's decryption key.

        Raises:
            DecryptionError: If the service refuses the key or answers malformed
        """
        response = self._request(
            DecryptionError,
            'POST',
            f"{self.encryption_url}/api/fetchKey",
            json={'cid': cid, 'address': address, 'signature': signature}
        )
        try:
            key = response.json()['key']
        except (KeyError, ValueError) as e:
            raise DecryptionError(f"Invalid key response: {str(e)}") from e
        if not key:
            raise DecryptionError(f"No decryption key released for {cid}")
        return key.encode('utf-8') if isinstance(key, str) else key

__all__ = [
    'StorageClient', 'StoredContent', 'gateway_url',
    'StorageError', 'StorageConfigError', 'UploadError', 'DownloadError', 'DecryptionError',
]
