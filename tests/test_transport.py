"""Tests for FeedTransport."""

import threading
import unittest
from unittest.mock import MagicMock, patch
import sys
from pathlib import Path

import requests

# Add src to path so we can import umoparse
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from umoparse import commands
from umoparse.config import TransportConfig
from umoparse.exceptions import ConfigError, TransportError
from umoparse.transport import FEED_BASE_URI, FeedTransport


def _response(content: bytes = b"{}", status_error: Exception = None) -> MagicMock:
    response = MagicMock()
    response.iter_content.return_value = [content]
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


class TestFeedTransport(unittest.TestCase):
    """Test fetching, retries and cancellation."""

    def setUp(self):
        self.session = MagicMock()

    def _transport(self, **config) -> FeedTransport:
        config.setdefault("retry_delay", 50)
        return FeedTransport(TransportConfig(**config), session=self.session)

    def test_success_returns_body(self):
        self.session.get.return_value = _response(b'{"agency": []}')
        transport = self._transport(timeout=5, headers={"User-Agent": "umoparse-test"})

        data = transport.fetch(commands.agency_list())

        self.assertEqual(data, b'{"agency": []}')
        self.session.get.assert_called_once_with(
            f"{FEED_BASE_URI}?command=agencyList",
            headers={"User-Agent": "umoparse-test"},
            timeout=5,
            stream=True,
        )

    def test_zero_timeout_means_no_deadline(self):
        self.session.get.return_value = _response()
        self._transport(timeout=0).fetch(commands.agency_list())
        self.assertIsNone(self.session.get.call_args.kwargs["timeout"])

    def test_retries_until_success(self):
        """Two failures then a success: three attempts, success returned."""
        self.session.get.side_effect = [
            requests.ConnectionError("connection reset"),
            requests.Timeout("read timed out"),
            _response(b"ok"),
        ]
        transport = self._transport(retry_limit=2)

        self.assertEqual(transport.fetch(commands.agency_list()), b"ok")
        self.assertEqual(self.session.get.call_count, 3)

    def test_stops_on_first_success(self):
        self.session.get.return_value = _response(b"ok")
        transport = self._transport(retry_limit=5)

        transport.fetch(commands.agency_list())
        self.assertEqual(self.session.get.call_count, 1)

    def test_exhausted_retries_raise_last_failure(self):
        errors = [
            requests.ConnectionError("first"),
            requests.ConnectionError("second"),
            requests.ConnectionError("third"),
        ]
        self.session.get.side_effect = errors
        transport = self._transport(retry_limit=2)

        with self.assertRaises(TransportError) as ctx:
            transport.fetch(commands.agency_list())

        self.assertEqual(self.session.get.call_count, 3)
        self.assertIs(ctx.exception.__cause__, errors[2])

    def test_http_error_status_is_retried(self):
        http_error = requests.HTTPError("503 Server Error", response=MagicMock(status_code=503))
        self.session.get.side_effect = [
            _response(status_error=http_error),
            _response(b"recovered"),
        ]
        transport = self._transport(retry_limit=1)

        self.assertEqual(transport.fetch(commands.agency_list()), b"recovered")
        self.assertEqual(self.session.get.call_count, 2)

    def test_http_error_status_is_reported(self):
        http_error = requests.HTTPError("404 Not Found", response=MagicMock(status_code=404))
        self.session.get.return_value = _response(status_error=http_error)

        with self.assertRaises(TransportError) as ctx:
            self._transport().fetch(commands.route_list("ttc"))

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIn("command=routeList&a=ttc", ctx.exception.url)

    def test_short_retry_delay_rejected_before_request(self):
        transport = FeedTransport(TransportConfig(retry_delay=10), session=self.session)

        with self.assertRaises(ConfigError):
            transport.fetch(commands.agency_list())
        self.session.get.assert_not_called()

    def test_negative_retry_limit_rejected(self):
        with self.assertRaises(ConfigError):
            self._transport(retry_limit=-1).fetch(commands.agency_list())
        self.session.get.assert_not_called()

    def test_cancelled_before_first_attempt(self):
        cancel = threading.Event()
        cancel.set()
        transport = self._transport(cancel_event=cancel)

        with self.assertRaises(TransportError):
            transport.fetch(commands.agency_list())
        self.session.get.assert_not_called()

    def test_cancel_interrupts_retry_wait(self):
        cancel = threading.Event()
        failure = requests.ConnectionError("down")

        def fail_and_cancel(*args, **kwargs):
            cancel.set()
            raise failure

        self.session.get.side_effect = fail_and_cancel
        # A long delay would stall the test if the wait ignored cancellation.
        transport = self._transport(retry_limit=3, retry_delay=60000, cancel_event=cancel)

        with self.assertRaises(TransportError) as ctx:
            transport.fetch(commands.agency_list())

        self.assertEqual(self.session.get.call_count, 1)
        self.assertIsInstance(ctx.exception.__cause__, TransportError)
        self.assertIn("cancelled", str(ctx.exception))

    def test_body_is_read_in_chunks(self):
        response = _response()
        response.iter_content.return_value = [b'{"agen', b'cy": []}']
        self.session.get.return_value = response

        self.assertEqual(self._transport().fetch(commands.agency_list()), b'{"agency": []}')
        response.close.assert_called_once()

    @patch("umoparse.transport.time")
    def test_slow_body_exceeds_attempt_deadline(self, mock_time):
        """A body still arriving after the timeout fails the attempt."""
        # deadline computed at 0.0; first chunk at 1.0, second at 6.0 (> 5s)
        mock_time.monotonic.side_effect = [0.0, 1.0, 6.0, 7.0]
        response = _response()
        response.iter_content.return_value = [b"a", b"b", b"c"]
        self.session.get.return_value = response

        with self.assertRaises(TransportError) as ctx:
            self._transport(timeout=5).fetch(commands.agency_list())

        self.assertIn("deadline", str(ctx.exception))
        response.close.assert_called_once()

    @patch("umoparse.transport.time")
    def test_zero_timeout_never_checks_deadline(self, mock_time):
        mock_time.monotonic.side_effect = AssertionError("clock should not be read")
        self.session.get.return_value = _response(b"ok")

        self.assertEqual(self._transport(timeout=0).fetch(commands.agency_list()), b"ok")

    def test_close_only_closes_owned_session(self):
        FeedTransport(session=self.session).close()
        self.session.close.assert_not_called()


if __name__ == "__main__":
    unittest.main()
