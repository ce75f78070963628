"""
Network download manager with retry logic and checksum verification.

This module provides the HTTP layer used to fetch PHP source tarballs:
- Streaming downloads with TLS verification
- Retry logic with exponential backoff
- SHA256 verification during download

The timeout applies to connecting and to each read, not to the whole
transfer, so large tarballs on slow links are not cut off.
"""

import hashlib
import logging
import time
from pathlib import Path
from typing import Optional

import requests
from requests.exceptions import RequestException

from phpforge.core.exceptions import NetworkError

logger = logging.getLogger(__name__)


class DownloadError(NetworkError):
    """Exception raised when download fails."""

    pass


class ChecksumError(DownloadError):
    """Exception raised when checksum verification fails."""

    pass


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    timeout: int = 30,
    max_retries: int = 3,
) -> Path:
    """
    Download file from URL to destination with retry logic and checksum verification.

    Args:
        url: URL to download from
        destination: Local path to save file
        expected_sha256: Expected SHA256 hash (verified during download)
        timeout: Connect and per-read timeout in seconds
        max_retries: Maximum number of attempts

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If download fails after retries
        ChecksumError: If checksum doesn't match expected value
        ValueError: If URL or destination is invalid

    Example:
        >>> url = "https://www.php.net/distributions/php-8.3.12.tar.gz"
        >>> download_file(url, Path("/tmp/build/php-8.3.12.tar.gz"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    for attempt in range(max_retries):
        try:
            return _download_streaming(
                url=url,
                destination=destination,
                expected_sha256=expected_sha256,
                timeout=timeout,
            )
        except RequestException as e:
            if attempt == max_retries - 1:
                raise DownloadError(
                    f"Download failed after {max_retries} attempts: {e}"
                ) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)

    raise DownloadError("Download failed for unknown reason")


def _download_streaming(
    url: str,
    destination: Path,
    expected_sha256: Optional[str],
    timeout: int,
) -> Path:
    """
    Perform a streaming download, hashing chunks as they arrive.

    Raises:
        ChecksumError: If checksum doesn't match
        RequestException: If HTTP request fails
    """
    logger.info(f"Downloading from {url}")

    response = requests.get(url, stream=True, timeout=timeout, allow_redirects=True)
    response.raise_for_status()

    hasher = hashlib.sha256() if expected_sha256 else None
    downloaded = 0

    try:
        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=8192):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)

                if hasher:
                    hasher.update(chunk)
    except Exception as e:
        logger.error(f"Error during download: {e}")
        destination.unlink(missing_ok=True)
        raise

    if hasher and expected_sha256:
        actual_hash = hasher.hexdigest()
        if actual_hash.lower() != expected_sha256.lower():
            destination.unlink()
            raise ChecksumError(
                f"Checksum mismatch for {destination.name}: "
                f"expected {expected_sha256}, got {actual_hash}"
            )
        logger.debug("Checksum verified successfully")

    logger.info(f"Download complete: {destination} ({downloaded} bytes)")
    return destination


def fetch_json(url: str, timeout: int = 10) -> dict:
    """
    Fetch a JSON document with a bounded timeout.

    Args:
        url: URL to query
        timeout: Total request timeout in seconds

    Returns:
        Decoded JSON object

    Raises:
        NetworkError: On connection failure, HTTP error or invalid JSON
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except RequestException as e:
        raise NetworkError(f"Request to {url} failed: {e}") from e
    except ValueError as e:
        raise NetworkError(f"Invalid JSON from {url}: {e}") from e

    if not isinstance(data, dict):
        raise NetworkError(f"Unexpected response from {url}: expected an object")
    return data

