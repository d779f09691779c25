"""Database models."""
from scrim.models.base import Base, init_db
from scrim.models.tournament import Tournament
from scrim.models.participant import MvpVote, Participant
from scrim.models.team import Team, TeamMember
from scrim.models.clip import Clip
from scrim.models.bet import Bet, MatchSettlement
from scrim.models.ledger import LedgerAccount, LedgerTransaction, RewardGrant

__all__ = [
    "Base",
    "Tournament",
    "Participant",
    "MvpVote",
    "Team",
    "TeamMember",
    "Clip",
    "Bet",
    "MatchSettlement",
    "LedgerAccount",
    "LedgerTransaction",
    "RewardGrant",
    "init_db",
]
