import pytest

from errors import RecipientNotFoundError, TransportError
from mailer import SUBJECT, DeliveryReport, Notifier, create_email
from secret_santa import Participant

from conftest import FakeMailClient


COUPLES = [("A", "B"), ("B", "C"), ("C", "A")]


def _body(message):
    return message.get_content()


def test_create_email_addresses_giver_with_recipient_details(participants):
    a, b, _ = participants
    msg = create_email("santa@example.com", a, b)
    assert msg["To"] == "a@example.com"
    assert msg["From"] == "santa@example.com"
    assert msg["Subject"] == SUBJECT == "Gift Exchange"
    body = _body(msg)
    assert "Your gift is for: B" in body
    assert "size M" in body


def test_send_all_one_message_per_giver(participants, mail_client):
    report = Notifier(mail_client).send_all(COUPLES, participants)

    assert report.ok
    assert report.sent == ["A", "B", "C"]
    by_to = {m["To"]: _body(m) for m in mail_client.sent}
    assert set(by_to) == {"a@example.com", "b@example.com", "c@example.com"}
    assert "Your gift is for: B" in by_to["a@example.com"]
    assert "no socks" in by_to["b@example.com"]
    assert "Your gift is for: A" in by_to["c@example.com"]
    assert "likes tea" in by_to["c@example.com"]


def test_missing_recipient_stops_before_sending(participants, mail_client):
    couples = [("A", "B"), ("B", "Z"), ("C", "A")]
    with pytest.raises(RecipientNotFoundError):
        Notifier(mail_client).send_all(couples, participants)
    assert mail_client.sent == []


def test_missing_giver_stops_before_sending(participants, mail_client):
    with pytest.raises(RecipientNotFoundError):
        Notifier(mail_client).send_all([("Z", "A")], participants)
    assert mail_client.sent == []


def test_transport_failures_are_collected(participants):
    client = FakeMailClient(fail_for={"b@example.com"})
    report = Notifier(client).send_all(COUPLES, participants)

    assert not report.ok
    assert report.sent == ["A", "C"]
    assert list(report.failed) == ["B"]
    assert [m["To"] for m in client.sent] == ["a@example.com", "c@example.com"]

    with pytest.raises(TransportError) as excinfo:
        report.raise_for_failures()
    assert excinfo.value.givers == ["B"]


def test_only_resends_to_selected_givers(participants, mail_client):
    report = Notifier(mail_client).send_all(COUPLES, participants, only=["C"])
    assert report.sent == ["C"]
    assert [m["To"] for m in mail_client.sent] == ["c@example.com"]


def test_only_with_unknown_giver(participants, mail_client):
    with pytest.raises(RecipientNotFoundError):
        Notifier(mail_client).send_all(COUPLES, participants, only=["C", "Nobody"])
    assert mail_client.sent == []


def test_empty_note_still_renders():
    giver = Participant("A", "a@example.com")
    recipient = Participant("B", "b@example.com")
    assert "Context: \n" in _body(create_email("s@example.com", giver, recipient))


def test_report_to_dict():
    report = DeliveryReport(sent=["A"], failed={"B": "boom"})
    assert report.to_dict() == {"sent": ["A"], "failed": {"B": "boom"}}
    report.failed.clear()
    report.raise_for_failures()
