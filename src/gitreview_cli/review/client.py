"""HTTP client for the review server's REST API.

Batched status lookups are the hot path: the server accepts at most
``MAX_QUERY_CLAUSES`` ``q=`` parameters per request, so identifier lists
are split into groups that are fetched in parallel and stitched back
together in input order.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Sequence
from urllib.parse import quote

import httpx

from gitreview_cli.errors import ReviewHTTPError, ReviewProtocolError, ReviewServerError
from gitreview_cli.review.models import ReviewLookup, ReviewRecord
from gitreview_cli.review.origin import Credentials, ReviewOrigin

__all__ = [
    "MAX_QUERY_CLAUSES",
    "NO_MATCH_QUERY",
    "ReviewClient",
    "decode_response",
    "full_change_id",
    "normalize_query_response",
]

logger = logging.getLogger(__name__)

MAX_QUERY_CLAUSES = 10

# Sent in place of commits without a change identifier; matches nothing.
NO_MATCH_QUERY = "is:closed is:open"

DEFAULT_TIMEOUT = 30.0


def full_change_id(project: str, upstream: str, change_id: str) -> str:
    """Unambiguous server identifier ``project~branch~Ixxxx``."""
    return f"{project}~{upstream.removeprefix('origin/')}~{change_id}"


def decode_response(body: str, url: str) -> Any:
    """Strip the anti-XSSI first line and decode the JSON that follows."""
    newline = body.find("\n")
    if newline < 0:
        raise ReviewProtocolError(f"{url}: malformed json response - bad header")
    try:
        return json.loads(body[newline:])
    except ValueError as exc:
        raise ReviewProtocolError(f"{url}: malformed json response") from exc


def normalize_query_response(data: Any, requested: int) -> list[list[Any]]:
    """Return one result list per query clause.

    With a single ``q=`` the server answers with a flat array of changes;
    with several it answers with an array of arrays.
    """
    if not isinstance(data, list):
        raise ReviewProtocolError(f"unexpected query response type {type(data).__name__}")
    if requested == 1:
        data = [data]
    if len(data) != requested:
        raise ReviewProtocolError(f"review server result count mismatch: asked for {requested}, got {len(data)}")
    for group in data:
        if not isinstance(group, list):
            raise ReviewProtocolError("review server returned a malformed query result")
    return data


class ReviewClient:
    """Talks to one review server on behalf of one session.

    ``credentials`` may be a callable so that discovery happens only when
    the first request is made.
    """

    def __init__(
        self,
        origin: ReviewOrigin,
        credentials: Credentials | Callable[[], Credentials],
        *,
        http: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.origin = origin
        self._credentials = credentials
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ReviewClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _resolve_credentials(self) -> Credentials:
        if callable(self._credentials):
            return self._credentials()
        return self._credentials

    def full_change_id(self, upstream: str, change_id: str) -> str:
        return full_change_id(self.origin.project, upstream, change_id)

    def change_url(self, number: int) -> str:
        return f"{self.origin.url}/{number}"

    # -- transport -----------------------------------------------------

    def _api(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Issue one authenticated request and decode its JSON body.

        Raises:
            ReviewServerError: transport failure, non-200 status or an
                undecodable body.
        """
        if not path.startswith("/"):
            raise ValueError(f"malformed API path {path!r}")
        credentials = self._resolve_credentials()
        url = self.origin.url + path
        headers = {}
        auth = None
        if credentials.uses_cookie:
            headers["Cookie"] = f"{credentials.cookie_name}={credentials.cookie_value}"
        else:
            auth = httpx.BasicAuth(credentials.user, credentials.password)

        logger.debug("%s %s %s", method, url, params or "")
        try:
            response = self._http.request(method, url, params=params, json=body, headers=headers, auth=auth)
        except httpx.HTTPError as exc:
            raise ReviewServerError(f"fetch {path}: {exc}") from exc

        if response.status_code != 200:
            logger.debug("review server response:\n%s", response.text)
            raise ReviewHTTPError(url, response.status_code, response.text)
        return decode_response(response.text, url)

    # -- API -----------------------------------------------------------

    def fetch_change(self, change_id: str, options: Sequence[str] = ()) -> ReviewRecord:
        """Fetch one change by identifier; every failure raises."""
        params = [("o", option) for option in options]
        data = self._api("GET", "/a/changes/" + quote(change_id, safe="~"), params=params or None)
        return ReviewRecord.from_json(data)

    def query_changes(
        self,
        change_ids: Sequence[str | None],
        options: Sequence[str] = (),
    ) -> list[ReviewLookup]:
        """Look up many identifiers, one lookup per input, in input order.

        ``None`` entries stand for commits without a change identifier and
        always resolve to no records. A failed request only fails the
        lookups of its own group.
        """
        if not change_ids:
            return []
        groups = [
            list(change_ids[i : i + MAX_QUERY_CLAUSES])
            for i in range(0, len(change_ids), MAX_QUERY_CLAUSES)
        ]
        with ThreadPoolExecutor(max_workers=len(groups)) as executor:
            futures = [executor.submit(self._query_group, group, tuple(options)) for group in groups]

        lookups: list[ReviewLookup] = []
        for group, future in zip(groups, futures):
            try:
                results = future.result()
            except ReviewServerError as exc:
                logger.warning("review query for %d change(s) failed: %s", len(group), exc)
                lookups.extend(ReviewLookup(change_id=cid, error=exc) for cid in group)
                continue
            lookups.extend(
                ReviewLookup(change_id=cid, records=records) for cid, records in zip(group, results)
            )
        return lookups

    def _query_group(self, group: list[str | None], options: tuple[str, ...]) -> list[list[ReviewRecord]]:
        params = [("q", NO_MATCH_QUERY if cid is None else f"change:{cid}") for cid in group]
        params += [("o", option) for option in options]
        data = self._api("GET", "/a/changes/", params=params)
        return [
            [ReviewRecord.from_json(item) for item in result]
            for result in normalize_query_response(data, len(group))
        ]

    def submit(self, change_id: str) -> ReviewRecord:
        """Ask the server to submit a change, waiting for the merge."""
        data = self._api(
            "POST",
            "/a/changes/" + quote(change_id, safe="~") + "/submit",
            body={"wait_for_merge": True},
        )
        return ReviewRecord.from_json(data)
