import datetime
import enum
import hashlib
import logging
import random
from collections import Counter
from dataclasses import dataclass

import yaml
from werkzeug.security import check_password_hash, generate_password_hash

from errors import (
    ConfigurationError,
    DuplicateParticipantError,
    NotEnoughParticipantsError,
    ParticipantFileError,
    RecipientNotFoundError,
    StateError,
    UnshuffledError,
)
from mailer import MailerClient, Notifier
from storage import AssignmentStore, match_file_path


logger = logging.getLogger(__name__)

# PBKDF2-SHA256, 600k iterations, random 16 char salt per hash.
CONCEAL_METHOD = "pbkdf2:sha256:600000"


@dataclass(frozen=True)
class Participant:
    name: str
    email: str
    note: str = ""


class RunState(enum.Enum):
    CREATED = 1
    SHUFFLED = 2
    PERSISTED = 3


def check_conceal_method(method: str) -> str:
    """Reject a hash method werkzeug would only refuse at save time."""
    kind, *args = method.split(":")
    try:
        if kind == "pbkdf2":
            if len(args) > 2:
                raise ValueError("too many parts")
            if args and args[0] not in hashlib.algorithms_available:
                raise ValueError(f"unknown digest {args[0]!r}")
            if len(args) == 2 and int(args[1]) < 1:
                raise ValueError("iterations must be positive")
        elif kind == "scrypt":
            if len(args) not in (0, 3) or any(int(a) < 1 for a in args):
                raise ValueError("expected scrypt:n:r:p")
        else:
            raise ValueError(f"unsupported method {kind!r}")
    except ValueError as exc:
        raise ConfigurationError(f"Invalid conceal method {method!r}: {exc}") from exc
    return method


def conceal_name(name: str, method: str = CONCEAL_METHOD) -> str:
    return generate_password_hash(name, method=method)


def verify_name(name: str, hashed: str) -> bool:
    return check_password_hash(hashed, name)


def load_participants(path) -> list[Participant]:
    """Read the participant registry from a YAML list of mappings."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            entries = yaml.safe_load(f)
    except OSError as exc:
        raise ParticipantFileError(f"Error reading participants from {path}") from exc
    except UnicodeDecodeError as exc:
        raise ParticipantFileError(f"{path} is not valid UTF-8") from exc
    except yaml.YAMLError as exc:
        raise ParticipantFileError(f"Invalid YAML in {path}") from exc

    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ParticipantFileError(f"{path} must contain a list of participants")

    participants = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ParticipantFileError(f"Entry #{i + 1} in {path} must be a mapping")
        name = str(entry.get("name") or "").strip()
        email = str(entry.get("email") or "").strip()
        if not name or not email:
            raise ParticipantFileError(f"Entry #{i + 1} in {path} needs a name and an email")
        participants.append(
            Participant(
                name=name,
                email=email,
                note=str(entry.get("note") or "").strip(),
            )
        )
    return participants


class SecretSanta:
    """One gift-exchange run: shuffle, derive the rotation, persist, notify.

    The run only moves forward through ``RunState``. Shuffling twice or saving
    twice is a no-op, and pairs can only be derived once the participants
    have been shuffled.
    """

    def __init__(self, participants, store, rng=None, conceal_method=None):
        self.participants = list(participants)
        duplicates = [
            name for name, count in Counter(p.name for p in self.participants).items()
            if count > 1
        ]
        if duplicates:
            raise DuplicateParticipantError(duplicates)

        if not isinstance(store, AssignmentStore):
            store = AssignmentStore(store)
        self.store = store
        self.rng = rng or random.Random()
        self.conceal_method = check_conceal_method(conceal_method or CONCEAL_METHOD)
        self.state = RunState.CREATED
        self.couples = None

    @classmethod
    def for_year(cls, participants, year=None, data_dir=None, **kwargs):
        year = year or datetime.datetime.now().year
        return cls(participants, match_file_path(year, data_dir=data_dir), **kwargs)

    def shuffle(self):
        if self.state is not RunState.CREATED:
            return
        self.rng.shuffle(self.participants)
        self.state = RunState.SHUFFLED
        logger.info("Shuffled %d participants", len(self.participants))

    def derive_pairs(self):
        """Pair everyone with their successor in the shuffled order.

        The last participant gives to the first, so the couples form a single
        cycle. Row order is shuffled once more afterwards so it says nothing
        about the rotation.
        """
        if self.state is RunState.CREATED:
            raise UnshuffledError()
        if self.couples is not None:
            return list(self.couples)

        n = len(self.participants)
        if n < 2:
            raise NotEnoughParticipantsError(n)

        couples = [
            (self.participants[i].name, self.participants[(i + 1) % n].name)
            for i in range(n)
        ]
        self.rng.shuffle(couples)
        self.couples = couples
        return list(couples)

    def conceal(self, couples=None):
        if couples is None:
            couples = self.derive_pairs()
        return [
            (giver, conceal_name(recipient, method=self.conceal_method))
            for giver, recipient in couples
        ]

    def save(self):
        if self.state is RunState.PERSISTED:
            return None
        if self.state is RunState.CREATED:
            raise UnshuffledError()

        concealed = self.conceal(self.derive_pairs())
        self.store.save(concealed)
        self.state = RunState.PERSISTED
        return concealed

    def run(self):
        """Shuffle participants and save the draw to the store file."""
        self.shuffle()
        return self.save()

    def load(self):
        return self.store.load()

    def recipient_of(self, giver):
        if self.couples is None:
            raise StateError("No couples derived in this run")
        for g, recipient in self.couples:
            if g == giver:
                return recipient
        raise RecipientNotFoundError(f"{giver!r} is not a giver in this run")

    def recover_pairs(self):
        """Rebuild plaintext couples from the stored file.

        Each hashed recipient is checked against every registry name, which
        is slow by construction but fine for a family-sized draw.
        """
        couples = []
        for giver, hashed in self.load():
            recipient = next(
                (p.name for p in self.participants if verify_name(p.name, hashed)),
                None,
            )
            if recipient is None:
                raise RecipientNotFoundError(
                    f"Stored recipient for {giver!r} matches no participant"
                )
            couples.append((giver, recipient))
        return couples

    def send_emails(self, client=None, only=None):
        couples = self.couples if self.couples is not None else self.recover_pairs()
        if client is None:
            client = MailerClient.new()
        return Notifier(client).send_all(couples, self.participants, only=only)
