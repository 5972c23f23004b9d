"""Event records pushed to session observers."""

CONNECTED = "connected"
VALUE = "value"


class Keepalive:
    """Out-of-band liveness marker. Carries no payload and is not an event."""

    def __repr__(self) -> str:
        return "KEEPALIVE"


KEEPALIVE = Keepalive()


def connected_event(session_id: str) -> dict:
    return {"type": CONNECTED, "sessionId": session_id}


def value_event(text: str) -> dict:
    return {"type": VALUE, "text": text}
