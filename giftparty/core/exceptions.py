"""Error taxonomy shared by the codec, storage and party services."""


class GiftPartyError(RuntimeError):
    """Base exception for giftparty errors."""
    pass


class DecodeError(GiftPartyError, ValueError):
    """Raised when a join phrase is malformed or does not encode 4 bytes."""
    pass


class NotFound(GiftPartyError):
    """Raised when a requested record does not exist."""
    pass


class PartyNotFound(NotFound):
    """Raised when no party matches the given id."""

    def __init__(self, party_id):
        super().__init__(f"No party with id {party_id}")
        self.party_id = party_id


class MatchNotFound(NotFound):
    """Raised when a giver has no match in the given party."""

    def __init__(self, party_id, giver_id):
        super().__init__(f"No match for giver {giver_id} in party {party_id}")
        self.party_id = party_id
        self.giver_id = giver_id


class DuplicateSignup(GiftPartyError):
    """Raised when a user signs up for the same party twice."""

    def __init__(self, party_id, user_id):
        super().__init__(f"User {user_id} already joined party {party_id}")
        self.party_id = party_id
        self.user_id = user_id


class PartyClosed(GiftPartyError):
    """Raised when a signup arrives after the party's deadline."""
    pass


class ResolutionConflict(GiftPartyError):
    """Raised when matches are recorded for an already resolved party."""
    pass


class SignupsChanged(GiftPartyError):
    """Raised when the stored signups no longer match the set a draw was made from."""
    pass


class StorageError(GiftPartyError):
    """Raised when the store fails or times out."""
    pass


class DerangementError(GiftPartyError):
    """Raised when no derangement is found within the retry bound."""
    pass


class InvalidSignupWindow(GiftPartyError, ValueError):
    """Raised when a signup window cannot be parsed or is out of range."""
    pass


class NotPartyAdmin(GiftPartyError):
    """Raised when a non-admin tries an admin-only party action."""
    pass
