"""EnvelopeEvent parsing from Connect payloads and status polls."""

from donorflow.application.dtos.signing import EnvelopeEvent
from donorflow.domain.enums import EnvelopeStatus


def test_connect_v2_payload() -> None:
    event = EnvelopeEvent.from_payload(
        {
            "event": "envelope-completed",
            "data": {
                "envelopeId": "env-1",
                "envelopeSummary": {
                    "status": "Completed",
                    "completedDateTime": "2024-03-01T10:00:00Z",
                    "recipients": {
                        "signers": [
                            {
                                "recipientId": "1",
                                "name": "Dana",
                                "email": "dana@example.org",
                                "status": "completed",
                                "signedDateTime": "2024-03-01T09:59:00Z",
                            }
                        ]
                    },
                },
            },
        }
    )

    assert event.envelope_id == "env-1"
    assert event.status is EnvelopeStatus.COMPLETED
    assert event.raw_status == "completed"
    assert event.is_completed
    assert event.is_handled_event
    assert event.completed_at is not None and event.completed_at.tzinfo is not None
    assert event.recipients[0].email == "dana@example.org"
    assert event.idempotency_key == "env-1:completed"


def test_flat_legacy_payload() -> None:
    event = EnvelopeEvent.from_payload({"envelopeId": "env-2", "status": "sent"})
    assert event.envelope_id == "env-2"
    assert event.status is EnvelopeStatus.SENT
    assert event.event is None


def test_completed_event_without_status_implies_completed() -> None:
    event = EnvelopeEvent.from_payload({"event": "envelope-completed", "data": {"envelopeId": "e"}})
    assert event.raw_status == "completed"


def test_unknown_status_is_kept_raw() -> None:
    event = EnvelopeEvent.from_payload({"envelopeId": "e", "status": "correct"})
    assert event.status is None
    assert event.raw_status == "correct"


def test_unhandled_event_name() -> None:
    event = EnvelopeEvent.from_payload(
        {"event": "template-created", "data": {"envelopeId": "e", "envelopeStatus": "created"}}
    )
    assert not event.is_handled_event


def test_odd_shapes_never_raise() -> None:
    for payload in (None, [], "x", {"data": "nope"}, {"data": {"envelopeSummary": []}}):
        event = EnvelopeEvent.from_payload(payload)
        assert event.envelope_id is None


def test_from_envelope_poll_response() -> None:
    event = EnvelopeEvent.from_envelope(
        {
            "envelopeId": "env-3",
            "status": "delivered",
            "recipients": {"signers": [{"recipientId": "1", "status": "delivered"}]},
        }
    )
    assert event.status is EnvelopeStatus.DELIVERED
    assert event.is_handled_event
    assert event.recipients[0].status == "delivered"
