class SantaError(Exception):
    """Base class for everything a gift-exchange run can fail with."""


# --- configuration ---------------------------------------------------------

class ConfigurationError(SantaError):
    pass


class StorePathError(ConfigurationError):
    pass


class MailerConfigError(ConfigurationError):
    pass


# --- state -----------------------------------------------------------------

class StateError(SantaError):
    pass


class UnshuffledError(StateError):
    def __init__(self, message="Participants not shuffled"):
        super().__init__(message)


# --- data ------------------------------------------------------------------

class DataError(SantaError):
    pass


class NotEnoughParticipantsError(DataError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Need at least 2 participants, got {count}")


class DuplicateParticipantError(DataError):
    def __init__(self, names):
        self.names = sorted(names)
        super().__init__(f"Participant names must be unique: {', '.join(self.names)}")


class RecipientNotFoundError(DataError):
    pass


class ParticipantFileError(DataError):
    pass


# --- I/O -------------------------------------------------------------------

class PersistenceError(SantaError):
    pass


class EncodingError(SantaError):
    pass


# --- transport -------------------------------------------------------------

class TransportError(SantaError):
    def __init__(self, message, givers=None):
        self.givers = list(givers or [])
        super().__init__(message)
