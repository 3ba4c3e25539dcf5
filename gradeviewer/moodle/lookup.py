"""
Identity lookup backed by Moodle's core_enrol_get_potential_users service.

A search by student number returns the user's idnumber; a bulk search
(empty text) does not, which is why subject reconciliation searches one
record at a time.
"""

from typing import Any, Dict, List, Optional

from ..config import ReconciliationConfig
from ..errors import MalformedCandidate
from ..logger import get_logger
from ..models import ExternalCandidate, LookupQuery
from .client import MoodleClient

logger = get_logger()

POTENTIAL_USERS_METHOD = "core_enrol_get_potential_users"


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_candidate(raw: Any) -> ExternalCandidate:
    """
    Build an ExternalCandidate from one potential-user entry.

    Raises:
        MalformedCandidate: entry is not an object, or lacks id/fullname
    """
    if not isinstance(raw, dict):
        raise MalformedCandidate(f"Expected a user object, got {type(raw).__name__}")
    if raw.get("id") is None:
        raise MalformedCandidate("LMS user entry has no id")
    fullname = raw.get("fullname")
    if fullname is not None and not isinstance(fullname, str):
        raise MalformedCandidate(f"LMS user {raw['id']} has a non-text fullname")
    return ExternalCandidate(
        external_id=str(raw["id"]),
        full_name=fullname or "",
        email=_opt_str(raw.get("email")),
        id_number=_opt_str(raw.get("idnumber")),
        username=_opt_str(raw.get("username")),
    )


class MoodleIdentityLookup:
    """
    Callable lookup: LookupQuery -> list of ExternalCandidate.

    The sesskey is fetched once (connect) and reused read-only by every call,
    including calls from reconciliation worker threads.
    """

    source = "moodle"

    def __init__(
        self,
        client: MoodleClient,
        course_id: str,
        enrol_id: str,
        sesskey: str,
        per_page: int = 10,
        method: str = POTENTIAL_USERS_METHOD,
    ):
        self.client = client
        self.course_id = str(course_id)
        self.enrol_id = str(enrol_id)
        self.sesskey = sesskey
        self.per_page = per_page
        self.method = method

    @classmethod
    def connect(cls, client: MoodleClient, config: ReconciliationConfig) -> "MoodleIdentityLookup":
        """Authenticate once. Failures here are fatal for the whole run."""
        sesskey = client.connect()
        return cls(client, config.course_id, config.enrol_id, sesskey, per_page=config.per_page)

    def search(self, text: str, per_page: Optional[int] = None, page: int = 0) -> List[ExternalCandidate]:
        args: Dict[str, Any] = {
            "courseid": self.course_id,
            "enrolid": self.enrol_id,
            "search": text,
            "searchanywhere": True,
            "page": page,
            "perpage": per_page or self.per_page,
        }
        data = self.client.call_service(self.method, args, sesskey=self.sesskey)
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedCandidate(f"Expected a list of users, got {type(data).__name__}")
        candidates = [parse_candidate(item) for item in data]
        logger.debug("Moodle search results", search=text, results=len(candidates))
        return candidates

    def __call__(self, query: LookupQuery) -> List[ExternalCandidate]:
        return self.search(query.search_text)
