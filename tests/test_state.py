import json

import pytest

from vara import BitrateData, ConnectionData, Event, EventKind, ModemVariant, StateView
from vara.state import SessionState


@pytest.fixture
def state():
    return SessionState()


def view(state, variant=ModemVariant.HF):
    return StateView(state, variant)


class TestDefaults:
    def test_initial_values(self, state):
        v = view(state)
        assert v.listen_off is True
        assert v.compression_text is True
        assert v.bw2300 is True
        assert v.winlink_session is True
        assert v.chat_on is None and v.chat_off is None
        assert v.disconnected is True
        assert v.ptt_off is True
        assert v.ok is True and v.wrong is False
        assert v.registered == ()

    def test_fm_hides_hf_fields(self, state):
        v = view(state, ModemVariant.FM)
        assert v.bandwidth is None
        assert v.bw500 is None
        assert v.winlink_session is None
        assert v.tune is None and v.tune_on is None and v.tune_off is None

    def test_sat_keeps_session_and_tune(self, state):
        v = view(state, ModemVariant.SAT)
        assert v.bandwidth is None
        assert v.p2p_session is False
        assert v.tune_off is True


class TestApply:
    @pytest.mark.parametrize("on, off, attr", [
        (EventKind.PTT_ON, EventKind.PTT_OFF, "ptt_on"),
        (EventKind.BUSY_ON, EventKind.BUSY_OFF, "busy_on"),
        (EventKind.LINK_REGISTERED, EventKind.LINK_UNREGISTERED, "link_registered"),
        (EventKind.ENCRYPTION_READY, EventKind.ENCRYPTION_DISABLED, "encryption_ready"),
        (EventKind.ENCRYPTED_LINK, EventKind.UNENCRYPTED_LINK, "encrypted_link"),
        (EventKind.PENDING, EventKind.CANCEL_PENDING, "pending"),
    ])
    def test_flag_pairs(self, state, on, off, attr):
        v = view(state)
        state.apply(Event(on))
        assert getattr(v, attr) is True
        state.apply(Event(off))
        assert getattr(v, attr) is False

    def test_connected_then_disconnected(self, state):
        cd = ConnectionData("N0CALL", "W1AW", bandwidth=500)
        state.apply(Event(EventKind.CONNECTED, "CONNECTED N0CALL W1AW 500", cd))
        assert view(state).connected == cd
        state.apply(Event(EventKind.DISCONNECTED))
        assert view(state).connected is None
        assert view(state).disconnected is True

    def test_ok_and_wrong_toggle(self, state):
        state.apply(Event(EventKind.WRONG))
        assert (state.ok, state.wrong) == (False, True)
        state.apply(Event(EventKind.OK))
        assert (state.ok, state.wrong) == (True, False)

    def test_missing_soundcard(self, state):
        state.apply(Event(EventKind.MISSING_SOUNDCARD))
        assert view(state).missing_soundcard is True

    def test_command_and_data(self, state):
        state.apply(Event(EventKind.COMMAND, "BUSY ON"))
        state.apply(Event(EventKind.DATA, "", b"abc"))
        assert view(state).command == "BUSY ON"
        assert view(state).data == b"abc"


def test_to_dict_is_json_friendly(state):
    state.apply(Event(EventKind.REGISTERED, "", ("N0CALL", "N0CALL-1")))
    state.apply(Event(EventKind.BITRATE, "", BitrateData(4, 450)))
    state.apply(Event(EventKind.DATA, "", b"hi"))
    snapshot = view(state).to_dict()
    assert snapshot["registered"] == ["N0CALL", "N0CALL-1"]
    assert snapshot["bitrate"] == {"speed_level": 4, "bits_per_second": 450}
    assert snapshot["compression"] == "TEXT"
    assert snapshot["data"] == "hi"
    json.dumps(snapshot)
