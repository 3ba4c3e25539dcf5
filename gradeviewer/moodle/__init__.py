from .client import MoodleClient
from .lookup import MoodleIdentityLookup

__all__ = ["MoodleClient", "MoodleIdentityLookup"]
