from claimlink.services.matching.assignment_engine import AssignmentEngine
from claimlink.services.matching.match_scorer import MatchScorer
from claimlink.services.matching.rematch_runner import RematchRunner

__all__ = ["AssignmentEngine", "MatchScorer", "RematchRunner"]
