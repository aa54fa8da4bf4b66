"""Review server discovery and credentials.

The review server is derived from the ``gerrit`` key of ``codereview.cfg``
or, failing that, from git's ``remote.origin.url``. Credentials come from
git's ``http.cookiefile`` first and from ``~/.netrc`` second.
"""

from __future__ import annotations

import logging
import netrc
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse, urlunparse

from gitreview_cli.core.git import Git
from gitreview_cli.errors import ReviewAuthError

__all__ = [
    "Credentials",
    "ReviewOrigin",
    "discover_credentials",
    "parse_review_origin",
]

logger = logging.getLogger(__name__)

GOOGLESOURCE = ".googlesource.com"


@dataclass(frozen=True)
class ReviewOrigin:
    """Where the review API lives for this repository.

    ``host`` is the git host used to find credentials, ``url`` the API
    base URL and ``project`` the server-side project name.
    """

    host: str
    url: str
    project: str


@dataclass(frozen=True)
class Credentials:
    cookie_name: str = ""
    cookie_value: str = ""
    user: str = ""
    password: str = ""

    @property
    def uses_cookie(self) -> bool:
        return bool(self.cookie_name)


def _strip_userinfo(remote: str) -> str:
    parsed = urlparse(remote)
    if parsed.username is None and parsed.password is None:
        return remote
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def parse_review_origin(configured: str, remote_origin: str) -> ReviewOrigin:
    """Work out the review server from config and the git origin URL.

    Raises:
        ReviewAuthError: the origin is not a usable review server.
    """
    remote_origin = _strip_userinfo(remote_origin.strip())
    has_config = bool(configured)
    origin = configured or remote_origin

    if "github.com" in origin:
        raise ReviewAuthError(f"git origin must be a review server, not GitHub: {origin}")

    index = origin.find(GOOGLESOURCE)
    if index >= 0:
        if not origin.startswith("https://"):
            raise ReviewAuthError(f"git origin must be an https:// URL: {origin}")
        # https:// prefix and then one slash between host and project.
        if origin.count("/") != 3:
            raise ReviewAuthError(f"git origin is malformed: {origin}")
        host = origin[len("https://"):origin.rindex("/")]
        # Cookies are stored for go.googlesource.com; the API is served
        # from go-review.googlesource.com.
        review = origin[:index] + "-review" + origin[index:]
        url, _, project = review.rpartition("/")
        return ReviewOrigin(host=host, url=url, project=project)

    parsed = urlparse(remote_origin)
    host = parsed.hostname or ""
    if has_config:
        # Sub-path hosted servers are only supported through explicit config.
        if not remote_origin.startswith(configured):
            raise ReviewAuthError(
                f"review origin {configured!r} from codereview.cfg different than git origin url {remote_origin!r}"
            )
        return ReviewOrigin(
            host=host,
            url=configured.rstrip("/"),
            project=remote_origin[len(configured):].strip("/"),
        )

    if not parsed.scheme or not host:
        raise ReviewAuthError(f"cannot parse git remote.origin.url {remote_origin!r} as a URL")
    path = parsed.path
    base = remote_origin[: len(remote_origin) - len(path)] if path else remote_origin
    project = path.strip("/")
    if project.endswith(".git"):
        project = project[:-4]
    return ReviewOrigin(host=host, url=base, project=project)


def _cookie_from_file(cookie_file: Path, host: str) -> tuple[str, str] | None:
    try:
        data = cookie_file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("cannot read cookie file %s: %s", cookie_file, exc)
        return None
    best: tuple[str, str] | None = None
    best_len = -1
    for line in data.splitlines():
        fields = line.split("\t")
        if len(fields) < 7:
            continue
        domain = fields[0]
        if domain == host or (domain.startswith(".") and host.endswith(domain)):
            if len(domain) > best_len:
                best = (fields[5], fields[6])
                best_len = len(domain)
    return best


def discover_credentials(git: Git, origin: ReviewOrigin, home: Path | None = None) -> Credentials:
    """Find credentials for ``origin``; the longest matching cookie domain wins.

    Raises:
        ReviewAuthError: neither a cookie nor a netrc entry matches.
    """
    result = git.run(["config", "--path", "--get-urlmatch", "http.cookiefile", origin.url], check=False)
    cookie_path = result.stdout.strip()
    if result.ok and cookie_path:
        cookie = _cookie_from_file(Path(os.path.expanduser(cookie_path)), origin.host)
        if cookie is not None:
            logger.debug("using cookie %s for %s", cookie[0], origin.host)
            return Credentials(cookie_name=cookie[0], cookie_value=cookie[1])

    home = home or Path.home()
    netrc_path = home / ("_netrc" if os.name == "nt" else ".netrc")
    if netrc_path.exists():
        try:
            entry = netrc.netrc(str(netrc_path)).authenticators(origin.host)
        except (netrc.NetrcParseError, OSError) as exc:
            logger.warning("cannot parse %s: %s", netrc_path, exc)
            entry = None
        if entry is not None and entry[0] and entry[2]:
            logger.debug("using netrc login %s for %s", entry[0], origin.host)
            return Credentials(user=entry[0], password=entry[2])

    raise ReviewAuthError(f"cannot find authentication info for {origin.host}")
