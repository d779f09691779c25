"""Domain errors. Each carries the HTTP status the web layer answers with."""


class ScrimError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(ScrimError):
    status_code = 404


class TournamentNotFound(NotFound):
    def __init__(self, tournament_id: int):
        super().__init__(f"Tournament {tournament_id} not found")
        self.tournament_id = tournament_id


class InvalidState(ScrimError):
    status_code = 409


class VotingClosed(InvalidState):
    def __init__(self):
        super().__init__("MVP voting is closed")


class MatchAlreadyStarted(InvalidState):
    def __init__(self, match_id: str):
        super().__init__(f"Match {match_id} has already started")
        self.match_id = match_id


class ConcurrentModification(InvalidState):
    def __init__(self, what: str = "Tournament"):
        super().__init__(f"{what} was modified concurrently, retry the request")


class InsufficientFunds(ScrimError):
    def __init__(self, balance: int, amount: int):
        super().__init__(f"Insufficient balance: {balance} available, {amount} required")
        self.balance = balance
        self.amount = amount


class UnsupportedMedia(ScrimError):
    def __init__(self, url: str):
        super().__init__(f"Unsupported clip URL: {url}")
        self.url = url


class ExternalProviderError(ScrimError):
    """Bracket provider unreachable or answered with an error. Nothing local was changed."""

    status_code = 502


class Unauthorized(ScrimError):
    status_code = 403
