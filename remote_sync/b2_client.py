"""Backblaze B2 object store client over the native HTTP API."""

import time
import uuid
from pathlib import Path
from typing import Callable, Iterator, Optional
from urllib.parse import quote

import httpx

from common.logging_config import get_logger
from remote_sync.object_store import ObjectStore
from splitter.checksum_validator import compute_file_digest, compute_range_digest
from splitter.exceptions import RemoteAuthError, RemoteUnavailableError, UploadFailureError
from splitter.source_scanner import read_range

logger = get_logger(__name__)

B2_AUTHORIZE_URL = "https://api.backblazeb2.com/b2api/v2/b2_authorize_account"
API_PREFIX = "/b2api/v2"
DEFAULT_PART_SIZE = 100 * 1024 * 1024
MIN_PART_SIZE = 5 * 1024 * 1024
RETRYABLE_STATUS = {408, 429}


class B2ObjectStore(ObjectStore):
    """B2 client with retry logic, lazy authorization and large-file uploads."""

    digest_algorithm = "sha1"

    def __init__(
        self,
        key_id: str,
        application_key: str,
        bucket_name: str,
        timeout: float = 30,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        part_size: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize B2 client.

        Args:
            key_id: B2 application key ID
            application_key: B2 application key
            bucket_name: Bucket that receives the chunks
            timeout: Request timeout in seconds
            max_retries: Retry attempts on 5xx, 408, 429 and network errors
            retry_backoff_multiplier: Base of the exponential backoff delay
            part_size: Large-file part size; defaults to the account's recommendation
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.key_id = key_id
        self.application_key = application_key
        self.bucket_name = bucket_name
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.part_size = part_size
        self.session = httpx.Client(timeout=timeout, transport=transport)

        self.account_id: Optional[str] = None
        self.api_url: Optional[str] = None
        self.auth_token: Optional[str] = None
        self.bucket_id: Optional[str] = None

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> 'B2ObjectStore':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request_with_retry(
        self,
        method: str,
        url: str,
        content_factory: Optional[Callable[[], Iterator[bytes]]] = None,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make an HTTP request, retrying on server errors and network failures.

        Args:
            method: HTTP method
            url: Absolute URL
            content_factory: Builds a fresh request body for each attempt
            max_retries: Overrides the client's retry count for this request
            **kwargs: Additional arguments to pass to httpx request

        Raises:
            RemoteUnavailableError: If max retries are exceeded
        """
        if max_retries is None:
            max_retries = self.max_retries
        request_id = str(uuid.uuid4())
        last_exception = None

        for attempt in range(max_retries + 1):
            if content_factory is not None:
                kwargs['content'] = content_factory()

            try:
                response = self.session.request(method, url, **kwargs)
                logger.debug(
                    f"Response received: {method} {url} status={response.status_code} [request_id={request_id}]"
                )

                if _is_retryable(response.status_code) and attempt < max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {url} status={response.status_code}, retrying in {delay}s [request_id={request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except httpx.TransportError as e:
                last_exception = e
                if attempt < max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {url} error={type(e).__name__}, retrying in {delay}s [request_id={request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {url} error={e} [request_id={request_id}]"
                )

        if isinstance(last_exception, httpx.TimeoutException):
            raise RemoteUnavailableError("Request to B2 timed out.")
        if isinstance(last_exception, httpx.ConnectError):
            raise RemoteUnavailableError("Cannot connect to B2. Check network access.")
        raise RemoteUnavailableError(f"Connection to B2 failed: {type(last_exception).__name__}: {last_exception}")

    def _error_detail(self, response: httpx.Response) -> str:
        try:
            data = response.json()
            return f"{data.get('code', 'unknown')}: {data.get('message', '')}"
        except ValueError:
            return response.text or f"HTTP {response.status_code}"

    def authorize(self) -> None:
        """
        Authorize the account and resolve the bucket ID.

        Raises:
            RemoteAuthError: If B2 rejects the key
            RemoteUnavailableError: If B2 cannot be reached or the bucket does not exist
        """
        if not self.key_id or not self.application_key:
            raise RemoteAuthError("B2 credentials are not configured.")

        response = self._request_with_retry(
            'GET', B2_AUTHORIZE_URL, auth=(self.key_id, self.application_key)
        )
        if response.status_code in (401, 403):
            raise RemoteAuthError(f"B2 rejected the application key ({self._error_detail(response)})")
        if response.status_code != 200:
            raise RemoteUnavailableError(f"B2 authorization failed ({self._error_detail(response)})")

        data = response.json()
        self.account_id = data['accountId']
        self.api_url = data['apiUrl']
        self.auth_token = data['authorizationToken']
        if self.part_size is None:
            self.part_size = max(int(data.get('recommendedPartSize', DEFAULT_PART_SIZE)), MIN_PART_SIZE)

        allowed = data.get('allowed') or {}
        if allowed.get('bucketName') == self.bucket_name and allowed.get('bucketId'):
            self.bucket_id = allowed['bucketId']
        else:
            self.bucket_id = self._lookup_bucket_id()
        logger.info(f"B2 account authorized, bucket {self.bucket_name} ({self.bucket_id})")

    def _lookup_bucket_id(self) -> str:
        data = self._api('b2_list_buckets', {'accountId': self.account_id, 'bucketName': self.bucket_name})
        for bucket in data.get('buckets', []):
            if bucket.get('bucketName') == self.bucket_name:
                return bucket['bucketId']
        raise RemoteUnavailableError(f"B2 bucket not found: {self.bucket_name}")

    def _api(self, operation: str, payload: dict, reauthorized: bool = False) -> dict:
        """
        Call a B2 API operation, re-authorizing once when the token expires.
        """
        if self.auth_token is None:
            self.authorize()

        response = self._request_with_retry(
            'POST',
            f"{self.api_url}{API_PREFIX}/{operation}",
            json=payload,
            headers={'Authorization': self.auth_token},
        )
        if response.status_code == 401:
            if not reauthorized:
                logger.info("B2 authorization token expired, re-authorizing")
                self.auth_token = None
                return self._api(operation, payload, reauthorized=True)
            raise RemoteAuthError(f"B2 rejected {operation} ({self._error_detail(response)})")
        if response.status_code != 200:
            raise RemoteUnavailableError(f"B2 {operation} failed ({self._error_detail(response)})")
        return response.json()

    def check_access(self) -> None:
        self.authorize()

    def get_digest(self, name: str) -> Optional[str]:
        """
        Get the SHA1 of a remote file.

        Regular uploads report ``contentSha1``; large files report ``none``
        there and carry the whole-file digest in ``fileInfo.large_file_sha1``.
        """
        if self.bucket_id is None:
            self.authorize()
        data = self._api('b2_list_file_names', {
            'bucketId': self.bucket_id,
            'startFileName': name,
            'prefix': name,
            'maxFileCount': 1,
        })

        for info in data.get('files', []):
            if info.get('fileName') != name or info.get('action', 'upload') != 'upload':
                continue
            sha1 = info.get('contentSha1') or ''
            if sha1.startswith('unverified:'):
                sha1 = sha1[len('unverified:'):]
            if not sha1 or sha1 == 'none':
                sha1 = (info.get('fileInfo') or {}).get('large_file_sha1', '')
            return sha1.strip().lower() or None
        return None

    def upload(self, local_path: Path, name: str, digest: Optional[str] = None) -> None:
        """
        Upload a chunk, switching to the large-file API above the part size.

        Raises:
            UploadFailureError: If B2 does not accept the file
        """
        if self.bucket_id is None:
            self.authorize()

        local_path = Path(local_path)
        size = local_path.stat().st_size
        if digest is None:
            digest = compute_file_digest(local_path, self.digest_algorithm)

        try:
            if size > self.part_size:
                self._upload_large_file(local_path, name, size, digest)
            else:
                self._upload_small_file(local_path, name, size, digest)
        except RemoteUnavailableError as e:
            raise UploadFailureError(f"Upload failed for {name}: {e}") from e

    def _upload_small_file(self, local_path: Path, name: str, size: int, digest: str) -> None:
        """
        Upload in a single request.

        An upload URL is not reused after a server error, a timeout or an
        expired upload token; each retry asks B2 for a fresh one.
        """
        for attempt in range(self.max_retries + 1):
            target = self._api('b2_get_upload_url', {'bucketId': self.bucket_id})
            try:
                response = self._request_with_retry(
                    'POST',
                    target['uploadUrl'],
                    content_factory=_file_reader(local_path, 0, size),
                    max_retries=0,
                    headers={
                        'Authorization': target['authorizationToken'],
                        'X-Bz-File-Name': quote(name, safe='/'),
                        'Content-Type': 'b2/x-auto',
                        'Content-Length': str(size),
                        'X-Bz-Content-Sha1': digest,
                    },
                )
            except RemoteUnavailableError as e:
                failure = str(e)
                if attempt == self.max_retries:
                    raise
            else:
                if response.status_code == 200:
                    logger.debug(f"Uploaded {local_path.name} to {name}")
                    return
                failure = self._error_detail(response)
                retryable = _is_retryable(response.status_code) or response.status_code == 401
                if not retryable or attempt == self.max_retries:
                    raise UploadFailureError(f"Upload failed for {name} ({failure})")

            delay = self.retry_backoff_multiplier ** attempt
            logger.warning(
                f"Upload of {name} failed (attempt {attempt + 1}/{self.max_retries + 1}): {failure}, "
                f"retrying with a new upload URL in {delay}s"
            )
            time.sleep(delay)

    def _upload_large_file(self, local_path: Path, name: str, size: int, digest: str) -> None:
        started = self._api('b2_start_large_file', {
            'bucketId': self.bucket_id,
            'fileName': name,
            'contentType': 'b2/x-auto',
            'fileInfo': {'large_file_sha1': digest},
        })
        file_id = started['fileId']

        try:
            part_sha1s = []
            target = self._api('b2_get_upload_part_url', {'fileId': file_id})
            offset = 0
            part_number = 1
            while offset < size:
                length = min(self.part_size, size - offset)
                part_sha1 = compute_range_digest(local_path, offset, length, 'sha1')
                response = self._request_with_retry(
                    'POST',
                    target['uploadUrl'],
                    content_factory=_file_reader(local_path, offset, length),
                    headers={
                        'Authorization': target['authorizationToken'],
                        'X-Bz-Part-Number': str(part_number),
                        'Content-Length': str(length),
                        'X-Bz-Content-Sha1': part_sha1,
                    },
                )
                if response.status_code != 200:
                    raise UploadFailureError(
                        f"Part {part_number} upload failed for {name} ({self._error_detail(response)})"
                    )
                logger.debug(f"Uploaded part {part_number} of {name} ({length} bytes)")
                part_sha1s.append(part_sha1)
                offset += length
                part_number += 1

            self._api('b2_finish_large_file', {'fileId': file_id, 'partSha1Array': part_sha1s})
        except (UploadFailureError, RemoteUnavailableError):
            self._cancel_large_file(file_id)
            raise

    def _cancel_large_file(self, file_id: str) -> None:
        try:
            self._api('b2_cancel_large_file', {'fileId': file_id})
        except RemoteUnavailableError as e:
            logger.warning(f"Could not cancel unfinished large file {file_id}: {e}")


def _is_retryable(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_STATUS


def _file_reader(path: Path, offset: int, length: int) -> Callable[[], Iterator[bytes]]:
    """Factory giving a fresh byte stream for every retry attempt."""
    return lambda: read_range(path, offset, length)
