#!/usr/bin/env python3
"""
Dump Moodle potential users for a course as a table or JSON.

Usage:
    python scripts/fetch_moodle_users.py --search "2021" --per-page 200
    python scripts/fetch_moodle_users.py --json > users.json
"""

import argparse
import json
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from gradeviewer.config import ReconciliationConfig
from gradeviewer.env import load_env
from gradeviewer.errors import ExternalLookupError
from gradeviewer.moodle import MoodleClient, MoodleIdentityLookup


def main():
    load_env()
    parser = argparse.ArgumentParser(description="Fetch Moodle potential users")
    parser.add_argument("--course-id", help="Moodle course id (or MOODLE_COURSE_ID)")
    parser.add_argument("--enrol-id", help="Moodle enrolment instance id (or MOODLE_ENROL_ID)")
    parser.add_argument("--search", default="", help="Search text (default: everyone)")
    parser.add_argument("--page", type=int, default=0, help="Result page")
    parser.add_argument("--per-page", type=int, default=200, help="Users per page")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    args = parser.parse_args()

    try:
        config = ReconciliationConfig.from_env(course_id=args.course_id, enrol_id=args.enrol_id)
        client = MoodleClient.from_env()
        lookup = MoodleIdentityLookup.connect(client, config)
        users = lookup.search(args.search, per_page=args.per_page, page=args.page)
    except (ValueError, ExternalLookupError) as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Retrieved {len(users)} potential user(s)", file=sys.stderr)

    if args.json:
        rows = [
            {
                "id": u.external_id,
                "fullname": u.full_name,
                "email": u.email or "",
                "username": u.username or "",
                "idnumber": u.id_number or "",
            }
            for u in users
        ]
        print(json.dumps(rows, indent=2, ensure_ascii=False))
        return

    for u in users:
        print(f"{u.external_id:>8}  {u.id_number or '-':<15} {u.full_name:<40} {u.email or ''}")


if __name__ == "__main__":
    main()
