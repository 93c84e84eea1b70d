"""Image hashing service: download listing photos and fingerprint them.

Downloads run concurrently with bounded fan-out; each hash computation
itself is ordinary single-threaded CPU work inside the worker that
downloaded the image. Failures never propagate: a photo that cannot be
fetched or decoded yields None and an ``image_hash_failed`` event.
"""

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from vldedupe.audit.helpers import format_error
from vldedupe.audit.logger import AuditLogger
from vldedupe.images.phash import ImageHashError, compute_phash

__all__ = ["ImageHasher"]

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_WORKERS = 8
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = (408, 429, 500, 502, 503, 504)


class ImageHasher:
    """Compute perceptual hashes for image bytes and remote image URLs.

    Parameters
    ----------
    session : requests.Session | None, optional
        HTTP session to reuse. A session retrying connection errors, 429 and
        5xx responses is created
        if not provided.
    timeout : float, optional
        Per-request timeout in seconds.
    max_workers : int, optional
        Upper bound on concurrent downloads.
    logger : AuditLogger | None, optional
        Audit logger for failure events.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_workers: int = DEFAULT_MAX_WORKERS,
        logger: AuditLogger | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.session = session if session is not None else _default_session()
        self.timeout = timeout
        self.max_workers = max_workers
        self.logger = logger

    def hash_bytes(self, image_bytes: bytes, source: str | None = None) -> str | None:
        """Hash encoded image bytes, returning None if they cannot be decoded."""
        try:
            return compute_phash(image_bytes)
        except ImageHashError as e:
            self._log_failure(source, format_error(e))
            return None

    def hash_url(self, url: str, timeout: float | None = None) -> str | None:
        """Download an image and hash it.

        Parameters
        ----------
        url : str
            Image URL.
        timeout : float | None, optional
            Request timeout overriding the hasher default.

        Returns
        -------
        str | None
            Hash, or None if the URL is empty, the download fails or the
            content is not a decodable image.
        """
        if not url or not url.strip():
            self._log_failure(url, "Empty image URL")
            return None

        try:
            response = self.session.get(url, timeout=timeout or self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self._log_failure(url, format_error(e))
            return None

        return self.hash_bytes(response.content, source=url)

    def hash_urls(self, urls: Iterable[str], timeout: float | None = None) -> dict[str, str | None]:
        """Hash many URLs with at most ``max_workers`` concurrent downloads.

        Parameters
        ----------
        urls : Iterable[str]
            Image URLs. Duplicates are fetched once.
        timeout : float | None, optional
            Per-request timeout overriding the hasher default.

        Returns
        -------
        dict[str, str | None]
            Mapping of URL to hash (None for failures), in input order.
        """
        unique_urls = list(dict.fromkeys(urls))
        if not unique_urls:
            return {}

        workers = min(self.max_workers, len(unique_urls))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            hashes = executor.map(lambda url: self.hash_url(url, timeout=timeout), unique_urls)
            return dict(zip(unique_urls, hashes, strict=True))

    def first_available_hash(self, urls: Iterable[str], timeout: float | None = None) -> str | None:
        """Hash of the first photo (in listing order) that could be hashed."""
        for image_hash in self.hash_urls(urls, timeout=timeout).values():
            if image_hash is not None:
                return image_hash
        return None

    def _log_failure(self, source: str | None, error: str) -> None:
        if not self.logger:
            return
        self.logger.event(
            "image_hash_failed",
            data={"source": source, "error": error},
            level="WARN",
            stage="image_hashing",
        )


def _default_session() -> requests.Session:
    session = requests.Session()
    # Retry on server errors and rate limiting
    retries = Retry(
        total=DEFAULT_RETRIES,
        backoff_factor=DEFAULT_BACKOFF_FACTOR,
        status_forcelist=RETRY_STATUS_CODES,
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
