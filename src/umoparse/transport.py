"""HTTP access to the public JSON feed."""

import logging
import threading
import time
from typing import Optional

import requests

from .commands import FeedCommand
from .config import TransportConfig
from .exceptions import TransportError

logger = logging.getLogger(__name__)

FEED_BASE_URI = "https://retro.umoiq.com/service/publicJSONFeed"
CHUNK_SIZE = 8192


class FeedTransport:
    """Fetches raw feed responses with a timeout and bounded retries."""

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        session: Optional[requests.Session] = None,
        base_uri: str = FEED_BASE_URI,
    ):
        """
        Initialize the transport.

        Args:
            config: Request settings. Defaults to TransportConfig().
            session: Session to issue requests on. If None, the transport
                creates one and closes it in close().
            base_uri: Feed endpoint that command query strings are appended to.
        """
        self.config = config if config is not None else TransportConfig()
        self.base_uri = base_uri
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()

    def fetch(self, command: FeedCommand) -> bytes:
        """
        Fetch the raw response body for a command.

        The request is attempted once plus config.retry_limit more times,
        waiting config.retry_delay milliseconds after each failure. A
        non-success HTTP status counts as a failure.

        Args:
            command: The feed command to issue.

        Returns:
            Response body bytes from the first successful attempt.

        Raises:
            ConfigError: If the configuration is invalid. No request is made.
            TransportError: If every attempt failed (the last failure is
                raised), or the request was cancelled.
        """
        config = self.config
        config.validate()

        url = command.url(self.base_uri)
        attempts = 1 + config.retry_limit
        last_error: Optional[TransportError] = None

        for attempt in range(1, attempts + 1):
            if config.cancelled:
                raise TransportError(f"Request for {command} cancelled", url=url) from last_error

            try:
                return self._attempt(url)
            except TransportError as e:
                last_error = e

            if attempt < attempts:
                logger.warning(
                    f"Attempt {attempt}/{attempts} for {command} failed: {last_error}; "
                    f"retrying in {config.retry_delay}ms"
                )
                if self._wait(config.retry_delay / 1000.0):
                    raise TransportError(f"Request for {command} cancelled", url=url) from last_error

        logger.error(f"Failed to fetch {url} after {attempts} attempt(s): {last_error}")
        raise last_error

    def _attempt(self, url: str) -> bytes:
        """
        Make one request.

        config.timeout bounds the whole attempt: requests applies it to the
        connect and each read, and the body is streamed so that a server
        trickling bytes is cut off once the total elapsed time passes it.
        """
        config = self.config
        deadline = time.monotonic() + config.timeout if config.timeout else None
        logger.debug(f"Fetching {url}")
        try:
            response = self._session.get(
                url,
                headers=dict(config.headers),
                timeout=config.timeout or None,
                stream=True,
            )
            try:
                response.raise_for_status()
                chunks = []
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    chunks.append(chunk)
                    if deadline is not None and time.monotonic() > deadline:
                        raise TransportError(
                            f"Request to {url} exceeded its {config.timeout}s deadline", url=url
                        )
            finally:
                response.close()
        except requests.RequestException as e:
            status = e.response.status_code if e.response is not None else None
            raise TransportError(f"Request to {url} failed: {e}", url=url, status_code=status) from e
        return b"".join(chunks)

    def _wait(self, seconds: float) -> bool:
        """Sleep between attempts. Returns True if cancelled while waiting."""
        event = self.config.cancel_event
        if event is None:
            # A private event that is never set makes this a plain sleep.
            event = threading.Event()
        return event.wait(seconds)

    def close(self) -> None:
        """Close the underlying session if this transport created it."""
        if self._owns_session:
            self._session.close()
