"""Robinhood REST transport."""

import logging
from typing import Any, Optional

import requests

from . import __version__, urls
from ._config import API_VERSION, get_base_url, get_timeout
from .errors import (
    AuthenticationError,
    NotAuthenticatedError,
    RobinstockError,
    TransportError,
)
from .models import Response, Session
from .polling import CancelToken

logger = logging.getLogger(__name__)


class RobinhoodClient:
    """
    HTTP client for the Robinhood API.

    The client owns a pooled ``requests.Session`` but no credential.
    Authenticated calls take the caller's ``Session``, so one client can
    serve several identities.

    Example:
        client = RobinhoodClient()
        session = Session(username="alice")
        login(client, session, "alice", password)
        positions = client.load_positions(session)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        http: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API base URL (default from ROBINSTOCK_BASE_URL)
            timeout: Request timeout in seconds
            user_agent: Custom user agent string
            http: Pre-configured requests session to reuse
        """
        self.base_url = (base_url or get_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_timeout()

        self.session = http or requests.Session()
        self.session.headers.update({
            "Accept": "*/*",
            "Accept-Encoding": "gzip,deflate",
            "Accept-Language": "en-US,en;q=1",
            "X-Robinhood-API-Version": API_VERSION,
            "Connection": "keep-alive",
            "User-Agent": user_agent or f"robinstock/{__version__}",
        })

    def get(
        self,
        url: str,
        params: Optional[dict] = None,
        *,
        session: Optional[Session] = None,
        authenticated: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> Response:
        """Issue a GET request and decode the JSON body."""
        return self._request(
            "GET", url, session=session, authenticated=authenticated,
            cancel=cancel, params=params,
        )

    def post(
        self,
        url: str,
        payload: Optional[dict] = None,
        *,
        session: Optional[Session] = None,
        authenticated: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> Response:
        """Issue a POST request with a JSON body and decode the response."""
        return self._request(
            "POST", url, session=session, authenticated=authenticated,
            cancel=cancel, json=payload,
        )

    def fetch_all_pages(
        self,
        url: str,
        params: Optional[dict] = None,
        *,
        session: Optional[Session] = None,
        authenticated: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> list[dict[str, Any]]:
        """Follow ``next`` links and collect every page's ``results``."""
        results: list[dict[str, Any]] = []
        next_url: Optional[str] = url

        while next_url:
            response = self.get(
                next_url, params, session=session,
                authenticated=authenticated, cancel=cancel,
            )
            raise_for_status(response, next_url)
            results.extend(response.results)
            next_url = response.next_url
            # The next link already carries the query string
            params = None

        return results

    # Account and market data

    def load_accounts(self, session: Session, cancel: Optional[CancelToken] = None) -> list[dict]:
        """List brokerage accounts for the session's user."""
        return self.fetch_all_pages(
            urls.accounts_url(self.base_url), session=session,
            authenticated=True, cancel=cancel,
        )

    def load_positions(
        self,
        session: Session,
        nonzero: bool = True,
        cancel: Optional[CancelToken] = None,
    ) -> list[dict]:
        """List stock positions, by default only those still held."""
        params = {"nonzero": "true"} if nonzero else None
        return self.fetch_all_pages(
            urls.positions_url(self.base_url), params, session=session,
            authenticated=True, cancel=cancel,
        )

    def get_quotes(
        self,
        session: Session,
        symbols: list[str],
        cancel: Optional[CancelToken] = None,
    ) -> list[dict]:
        """Fetch quotes for one or more ticker symbols."""
        normalized = [s.strip().upper() for s in symbols if s.strip()]
        if not normalized:
            return []
        response = self.get(
            urls.quotes_url(self.base_url), {"symbols": ",".join(normalized)},
            session=session, authenticated=True, cancel=cancel,
        )
        raise_for_status(response, "quotes")
        return [r for r in response.results if r]

    def load_user_profile(self, session: Session, cancel: Optional[CancelToken] = None) -> dict:
        """Fetch the basic user profile."""
        response = self.get(
            urls.user_profile_url(self.base_url), session=session,
            authenticated=True, cancel=cancel,
        )
        raise_for_status(response, "user")
        return response.data

    def get_markets(self, session: Session, cancel: Optional[CancelToken] = None) -> list[dict]:
        """List the exchanges known to the API."""
        return self.fetch_all_pages(
            urls.markets_url(self.base_url), session=session,
            authenticated=True, cancel=cancel,
        )

    def _request(
        self,
        method: str,
        url: str,
        *,
        session: Optional[Session],
        authenticated: bool,
        cancel: Optional[CancelToken],
        **kwargs,
    ) -> Response:
        """
        Make a request and decode its body.

        HTTP error statuses are returned, not raised: the login flow reads
        verification and challenge signals out of 4xx bodies.

        Raises:
            NotAuthenticatedError: If authenticated without a credential
            OperationCancelledError: If the cancel token has fired
            TransportError: On network failure or an undecodable body
        """
        headers = {}
        if authenticated:
            if session is None or not session.is_authenticated:
                raise NotAuthenticatedError("not authenticated")
            headers["Authorization"] = session.credential.authorization

        timeout = self.timeout
        if cancel is not None:
            cancel.raise_if_cancelled()
            remaining = cancel.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=timeout, **kwargs
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        return self._decode_response(response, method, url)

    def _decode_response(
        self,
        response: requests.Response,
        method: str,
        url: str,
    ) -> Response:
        """Decode a JSON object body; an empty body decodes to ``{}``."""
        status = response.status_code
        logger.debug(f"{method} {url} -> {status}")

        if not response.content or not response.content.strip():
            return Response(status_code=status)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"{method} {url} returned an undecodable body ({status})",
                status_code=status,
            ) from e

        if not isinstance(data, dict):
            raise TransportError(
                f"{method} {url} returned a non-object body ({status})",
                status_code=status,
            )

        results = data.get("results")
        if isinstance(results, list):
            results = [r for r in results if isinstance(r, dict)]
        else:
            results = []

        return Response(status_code=status, data=data, results=results)

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def raise_for_status(response: Response, context: str = "") -> None:
    """
    Raise an appropriate exception for an error response.

    Raises:
        AuthenticationError: On 401
        RobinstockError: On any other status >= 400
    """
    if response.ok:
        return

    detail = response.data.get("detail") or "Unknown error"
    status = response.status_code
    where = f" [{context}]" if context else ""

    if status == 401:
        raise AuthenticationError(
            f"Invalid or expired token{where}: {detail}",
            status_code=status,
        )
    raise RobinstockError(
        f"Request failed ({status}){where}: {detail}",
        status_code=status,
    )
