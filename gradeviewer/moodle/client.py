"""
Moodle web client.

Logs in through the regular login form, reads the sesskey from the
dashboard and calls AJAX services (lib/ajax/service.php) with it. One
client holds one authenticated requests.Session; reconciliation runs share
it read-only across lookups.
"""

import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from ..errors import AuthenticationError, ExternalLookupError
from ..logger import get_logger
from .common import send

logger = get_logger()

DEFAULT_LOGIN_PATH = "/login/index.php"
DEFAULT_DASHBOARD_PATH = "/my/index.php"
DEFAULT_AJAX_SERVICE_PATH = "/lib/ajax/service.php"
DEFAULT_USER_AGENT = "GradeViewer Moodle Client/1.0"

SESSKEY_JS_RE = re.compile(r'"sesskey"\s*:\s*"([^"]+)"')


def extract_hidden_input(html: str, name: str) -> Optional[str]:
    """Value of <input name=...> in an HTML page, or None."""
    soup = BeautifulSoup(html, "html.parser")
    el = soup.find("input", attrs={"name": name})
    if el is not None and el.get("value"):
        return el["value"]
    return None


def extract_sesskey(html: str) -> Optional[str]:
    sesskey = extract_hidden_input(html, "sesskey")
    if sesskey:
        return sesskey
    # Pages without a logout form still carry it in M.cfg
    m = SESSKEY_JS_RE.search(html)
    return m.group(1) if m else None


def derive_cookie_name(env_key: str) -> Optional[str]:
    """Map MOODLE_COOKIE_<SUFFIX> to a cookie name."""
    raw = env_key.replace("MOODLE_COOKIE_", "", 1)
    if not raw:
        return None
    if raw.startswith("GA"):
        suffix = raw[2:]
        if not suffix:
            return "_ga"
        return "_ga" + (suffix if suffix.startswith("_") else f"_{suffix}")
    if raw == "MOODLESESSION":
        return "MoodleSession"
    if raw == "MOODLEID1":
        return "MOODLEID1_"
    segments = raw.lower().split("_")
    return segments[0].capitalize() + "".join(segments[1:])


def collect_cookies_from_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Initial cookies from MOODLE_INITIAL_COOKIES ("a=1; b=2") and MOODLE_COOKIE_* vars."""
    env = os.environ if environ is None else environ
    cookies: Dict[str, str] = {}

    inline = env.get("MOODLE_INITIAL_COOKIES", "")
    for segment in (s.strip() for s in inline.split(";")):
        if not segment:
            continue
        name, sep, value = segment.partition("=")
        if not name.strip() or not sep:
            logger.warning("Skipping malformed cookie segment", segment=segment)
            continue
        cookies[name.strip()] = value.strip()

    for key, value in env.items():
        if not key.startswith("MOODLE_COOKIE_") or not value:
            continue
        value = value.strip()
        if "=" in value:
            name, _, cookie_value = value.partition("=")
            if not name.strip():
                logger.warning("Skipping malformed cookie env", env=key)
                continue
            cookies[name.strip()] = cookie_value.strip()
            continue
        name = derive_cookie_name(key)
        if not name:
            logger.warning("Unable to derive cookie name from env; set value as CookieName=value", env=key)
            continue
        cookies[name] = value

    return cookies


class MoodleClient:
    """
    Session-based Moodle client.

    Args:
        base_url: Moodle site root, e.g. https://lms.example.edu
        login_path: Login form path
        dashboard_path: Page used to verify login and read the sesskey
        ajax_service_path: AJAX service endpoint
        username / password: Form login credentials (optional)
        initial_cookies: Cookies to seed the session with (e.g. an existing MoodleSession)
        user_agent: User-Agent header
        session: Pre-built requests.Session (tests inject fakes here)
    """

    def __init__(
        self,
        base_url: str,
        login_path: Optional[str] = None,
        dashboard_path: Optional[str] = None,
        ajax_service_path: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        initial_cookies: Optional[Dict[str, str]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValueError("MoodleClient requires a base_url")
        self.base_url = base_url.rstrip("/") + "/"
        self.login_path = (login_path or DEFAULT_LOGIN_PATH).lstrip("/")
        self.dashboard_path = (dashboard_path or DEFAULT_DASHBOARD_PATH).lstrip("/")
        self.ajax_service_path = (ajax_service_path or DEFAULT_AJAX_SERVICE_PATH).lstrip("/")
        self.username = username
        self.password = password

        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        for name, value in (initial_cookies or {}).items():
            if value:
                self.session.cookies.set(name, value)

    def url(self, path: str) -> str:
        return urljoin(self.base_url, path)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def login(self) -> None:
        """
        Full form login. Leaves the MoodleSession cookie on the session.

        Raises:
            ValueError: No credentials configured
            AuthenticationError: Login rejected or dashboard not reachable
        """
        if not self.has_credentials:
            raise ValueError("MoodleClient.login requires username and password")

        page = send(self.session, "GET", self.url(self.login_path), retry=True)
        form = {"username": self.username, "password": self.password}
        token = extract_hidden_input(page.text, "logintoken")
        if token:
            form["logintoken"] = token

        resp = send(self.session, "POST", self.url(self.login_path), data=form, check_status=False)
        if resp.status_code >= 400:
            raise AuthenticationError(f"Moodle login failed with status {resp.status_code}")

        dashboard = send(
            self.session, "GET", self.url(self.dashboard_path),
            retry=True, check_status=False, allow_redirects=False,
        )
        if dashboard.status_code in (301, 302, 303, 307):
            raise AuthenticationError("Moodle login redirected away from dashboard; check credentials.")
        if dashboard.status_code >= 400:
            raise AuthenticationError(
                f"Failed to access Moodle dashboard after login (status {dashboard.status_code})"
            )
        logger.info("Logged in to Moodle", user=self.username)

    def fetch_sesskey(self) -> str:
        """Read a fresh sesskey from the dashboard."""
        resp = send(self.session, "GET", self.url(self.dashboard_path), retry=True)
        sesskey = extract_sesskey(resp.text)
        if not sesskey:
            raise AuthenticationError("Unable to locate sesskey on Moodle dashboard page")
        return sesskey

    def connect(self) -> str:
        """Log in when credentials are configured, then return a sesskey."""
        if self.has_credentials:
            self.login()
        else:
            logger.info("Skipping Moodle login (no credentials); relying on existing cookies")
        return self.fetch_sesskey()

    def call_service(
        self,
        methodname: str,
        args: Dict[str, Any],
        sesskey: Optional[str] = None,
        info: Optional[str] = None,
    ) -> Any:
        """
        Invoke one Moodle AJAX service and return its data payload.

        Raises:
            ExternalLookupError: Transport failure, unexpected body, or a Moodle error payload
        """
        sesskey = sesskey or self.fetch_sesskey()
        payload = [{"index": 0, "methodname": methodname, "args": args}]
        logger.debug("Calling Moodle service", method=methodname, args=args)

        resp = send(
            self.session, "POST", self.url(self.ajax_service_path),
            params={"sesskey": sesskey, "info": info or methodname},
            json=payload,
        )
        try:
            body = resp.json()
        except ValueError as e:
            raise ExternalLookupError(f"Moodle returned non-JSON response for {methodname}") from e

        if not isinstance(body, list) or not body:
            raise ExternalLookupError("Unexpected Moodle AJAX response format")

        result = body[0]
        if not isinstance(result, dict):
            raise ExternalLookupError("Unexpected Moodle AJAX response format")
        error = result.get("error")
        if error:
            if isinstance(error, dict):
                code = error.get("errorcode") or "unknown"
                message = error.get("message") or "No message"
            else:
                code, message = "unknown", str(error)
            raise ExternalLookupError(f"Moodle AJAX error ({code}): {message}")

        return result.get("data")

    @classmethod
    def from_env(cls, session: Optional[requests.Session] = None) -> "MoodleClient":
        base_url = os.getenv("MOODLE_BASE_URL")
        if not base_url:
            raise ValueError("MOODLE_BASE_URL env var is required")
        return cls(
            base_url=base_url,
            login_path=os.getenv("MOODLE_LOGIN_PATH"),
            dashboard_path=os.getenv("MOODLE_DASHBOARD_PATH"),
            ajax_service_path=os.getenv("MOODLE_AJAX_SERVICE_PATH"),
            username=os.getenv("MOODLE_LOGIN_USERNAME"),
            password=os.getenv("MOODLE_LOGIN_PASSWORD"),
            initial_cookies=collect_cookies_from_env(),
            session=session,
        )
