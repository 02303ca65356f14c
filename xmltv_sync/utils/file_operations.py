"""
File operation utilities

Downloads feed documents to temporary files with retry logic.
"""
import logging
import tempfile
from pathlib import Path
import asyncio

import aiofiles
import httpx


logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


async def _stream_to_file(client: httpx.AsyncClient, url: str, target: Path) -> int:
    """Stream the response body into ``target`` and return the number of bytes written."""
    written = 0
    async with client.stream("GET", url) as response:
        response.raise_for_status()
        async with aiofiles.open(target, "wb") as handle:
            async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                await handle.write(chunk)
                written += len(chunk)
    return written


async def download_file(
    url: str,
    filename: str,
    timeout: float = 120.0,
    max_retries: int = 3,
    backoff_factor: float = 2.0
) -> Path:
    """
    Download a feed document with exponential backoff retry logic

    Retries on timeouts, connection errors and 5xx responses.
    4xx responses fail immediately.

    Args:
        url: URL to download from
        filename: Name for the temporary file
        timeout: HTTP timeout in seconds
        max_retries: Maximum number of attempts
        backoff_factor: Wait between attempts is backoff_factor ** attempt

    Returns:
        Path to downloaded temporary file

    Raises:
        httpx.HTTPError: If download fails after all retries
    """
    target = Path(tempfile.gettempdir()) / filename
    last_error: httpx.HTTPError | None = None

    for attempt in range(max_retries):
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                written = await _stream_to_file(client, url, target)
            logger.info("Downloaded %.2f MB to %s", written / (1024 * 1024), target)
            return target
        except httpx.HTTPStatusError as exc:
            if 400 <= exc.response.status_code < 500:
                logger.error("HTTP %s (client error) for %s", exc.response.status_code, url)
                raise
            last_error = exc
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            last_error = exc

        if attempt < max_retries - 1:
            wait_time = backoff_factor ** attempt
            logger.warning(
                "Download attempt %s/%s failed (%s), retrying in %.1fs",
                attempt + 1,
                max_retries,
                type(last_error).__name__,
                wait_time,
            )
            await asyncio.sleep(wait_time)

    logger.error("Download failed after %s attempts", max_retries)
    if last_error:
        raise last_error
    raise RuntimeError(f"Failed to download {url} after {max_retries} attempts")


def cleanup_temp_file(file_path: Path) -> bool:
    """Delete a temporary file, returning True if it was removed."""
    if not file_path or not file_path.exists():
        return False

    try:
        file_path.unlink()
        logger.debug("Cleaned up temporary file: %s", file_path)
        return True
    except OSError as exc:
        logger.warning("Failed to delete temporary file %s: %s", file_path, exc)
        return False
