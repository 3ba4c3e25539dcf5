from .features import name_similarity
from .resolver import MatchState, Resolution, resolve_identity

__all__ = ["MatchState", "Resolution", "name_similarity", "resolve_identity"]
