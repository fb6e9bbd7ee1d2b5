import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from errors import TransportError  # noqa: E402
from secret_santa import Participant  # noqa: E402


# Cheap work factor so hashing doesn't dominate the test run.
FAST_METHOD = "pbkdf2:sha256:1000"


class KeepOrder:
    """Random source that leaves every sequence as it is."""

    def __init__(self):
        self.calls = 0

    def shuffle(self, seq):
        self.calls += 1


class FakeMailClient:
    def __init__(self, user="santa@example.com", fail_for=()):
        self.user = user
        self.fail_for = set(fail_for)
        self.sent = []

    def get_user(self):
        return self.user

    def send(self, message):
        if message["To"] in self.fail_for:
            raise TransportError(f"Error sending email to {message['To']}")
        self.sent.append(message)


@pytest.fixture
def participants():
    return [
        Participant("A", "a@example.com", "likes tea"),
        Participant("B", "b@example.com", "size M"),
        Participant("C", "c@example.com", "no socks"),
    ]


@pytest.fixture
def mail_client():
    return FakeMailClient()
