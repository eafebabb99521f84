"""Command/response correlation and client behaviour over a fake transport."""
import pytest

from conftest import FakeTransport, make_client, register
from vara import (
    BitrateData,
    CleanTxBufferState,
    ConnectionData,
    EventKind,
    ModemQuirks,
    ModemVariant,
    VaraClient,
    VaraCommandFailed,
    VaraCommandRejected,
    VaraTransportError,
    VaraValidationError,
)


class TestOpenClose:
    def test_open_uses_consecutive_ports(self, client):
        assert client.command_transport.port == 8300
        assert client.data_transport.port == 8301
        assert client.is_open

    def test_data_port_failure_closes_command_socket(self):
        c = VaraClient("127.0.0.1", 8300, settle_s=0, transport_factory=FakeTransport)
        c.data_transport.fail_connect = True
        with pytest.raises(VaraTransportError):
            c.open()
        assert c.command_transport.disconnect_calls == 1
        assert not c.command_transport.connected
        assert not c.is_open

    def test_command_port_failure_never_tries_data(self):
        c = VaraClient("127.0.0.1", 8300, settle_s=0, transport_factory=FakeTransport)
        c.command_transport.fail_connect = True
        with pytest.raises(VaraTransportError):
            c.open()
        assert c.data_transport.connect_calls == 0

    def test_close_writes_nothing_and_fails_pending(self, client, cmd):
        future = client.get_version()
        written = list(cmd.written)
        client.close()
        assert cmd.written == written
        with pytest.raises(VaraTransportError):
            future.result(timeout=0)
        assert not client.is_open

    def test_close_twice_is_harmless(self, client):
        client.close()
        client.close()
        assert client.command_transport.disconnect_calls == 1

    def test_commands_after_close_raise(self, client):
        client.close()
        with pytest.raises(VaraTransportError):
            client.listen_on()

    def test_context_manager(self):
        c = VaraClient("127.0.0.1", 8300, settle_s=0, transport_factory=FakeTransport)
        with c as opened:
            assert opened.is_open
        assert not c.is_open

    def test_transport_drop_fails_pending_and_publishes_closed(self, client, cmd):
        seen = []
        client.on(EventKind.CLOSED, seen.append)
        future = client.connect("N0CALL", "W1AW")
        cmd.drop()
        with pytest.raises(VaraTransportError):
            future.result(timeout=0)
        assert len(seen) == 1
        assert seen[0].line == "command"


class TestWireFormat:
    def test_lines_end_with_carriage_return(self, client, cmd):
        client.listen_on()
        client.compression_files()
        client.bw500()
        assert cmd.lines() == ["LISTEN ON\r", "COMPRESSION FILES\r", "BW500\r"]

    def test_connect_via_relays(self, client, cmd):
        client.connect("N0CALL", "W1AW", "R1", "R2")
        assert cmd.lines() == ["CONNECT N0CALL W1AW VIA R1 R2\r"]

    def test_validation_error_writes_nothing(self, client, cmd):
        with pytest.raises(VaraValidationError):
            client.register_callsigns("A", "B", "C", "D", "E", "F")
        with pytest.raises(VaraValidationError):
            client.set_tune(-10)
        assert cmd.written == []

    def test_register_accepts_a_list(self, client, cmd):
        client.register_callsigns(["N0CALL", "N0CALL-1"])
        assert cmd.lines() == ["MYCALL N0CALL N0CALL-1\r"]


class TestCorrelation:
    def test_ok_resolves_and_updates_echo(self, client, cmd):
        future = client.listen_on()
        assert client.state.listen_on is True
        assert not future.done()
        cmd.feed("OK\r")
        assert future.result(timeout=0) is None

    def test_ok_resolves_in_issue_order(self, client, cmd):
        first = client.listen_on()
        second = client.compression_off()
        cmd.feed("OK\r")
        assert first.done() and not second.done()
        cmd.feed("OK\r")
        assert second.done()

    def test_wrong_rejects_last_command_and_late_ok_is_ignored(self, client, cmd):
        future = client.bw2750()
        cmd.feed("WRONG\r")
        with pytest.raises(VaraCommandRejected) as info:
            future.result(timeout=0)
        assert info.value.operation == "bw2750"
        assert client.state.wrong is True
        cmd.feed("OK\r")
        assert client.state.ok is True

    def test_wrong_does_not_blame_an_older_command(self, client, cmd):
        connecting = client.connect("N0CALL", "W1AW")
        listen = client.listen_on()
        cmd.feed("WRONG\r")
        assert listen.exception(timeout=0) is not None
        assert not connecting.done()

    def test_wrong_without_pending_command_is_ignored(self, client, cmd):
        client.chat_on()
        cmd.feed("WRONG\r")
        assert client.state.wrong is True

    def test_interleaved_register_and_version(self, client, cmd):
        reg = client.register_callsigns("N0CALL")
        ver = client.get_version()
        cmd.feed("VERSION VARA 4.7.3\rREGISTERED N0CALL\r")
        assert ver.result(timeout=0) == "VERSION VARA 4.7.3"
        assert reg.result(timeout=0) == ("N0CALL",)
        assert client.state.version == "VERSION VARA 4.7.3"
        assert client.state.registered == ("N0CALL",)

    def test_reply_split_across_chunks(self, client, cmd):
        future = client.get_version()
        cmd.feed("VERSION VA")
        assert not future.done()
        cmd.feed("RA 4.7.3\r")
        assert future.result(timeout=0) == "VERSION VARA 4.7.3"


class TestConnect:
    def test_resolves_with_connection_data(self, client, cmd):
        future = client.connect("N0CALL", "W1AW", "R1")
        cmd.feed("PENDING\rCONNECTED N0CALL W1AW VIA R1 2300\r")
        cd = future.result(timeout=0)
        assert cd == ConnectionData("N0CALL", "W1AW", bandwidth=2300, relay1="R1")
        assert client.state.connected == cd
        assert client.state.disconnected is False

    def test_unparseable_line_does_not_return_previous_link(self, client, cmd):
        cmd.feed("CONNECTED N0CALL OLD 2300\r")
        assert client.state.connected.destination == "OLD"
        future = client.connect("N0CALL", "W1AW", "R1")
        cmd.feed("CONNECTED N0CALL W1AW VIA R1\r")
        assert future.result(timeout=0) is None

    def test_disconnected_rejects(self, client, cmd):
        future = client.connect("N0CALL", "W1AW")
        cmd.feed("DISCONNECTED\r")
        with pytest.raises(VaraCommandFailed, match="W1AW"):
            future.result(timeout=0)

    def test_cancel_pending_ignored_by_default(self, client, cmd):
        future = client.connect("N0CALL", "W1AW")
        cmd.feed("PENDING\rCANCELPENDING\r")
        assert not future.done()

    def test_quirks_resolve_on_pending(self):
        c = make_client(quirks={"connect_resolves_on_pending": True})
        future = c.connect("N0CALL", "W1AW")
        c.command_transport.feed("PENDING\r")
        assert future.result(timeout=0) is None
        c.close()

    def test_disconnect_resolves_on_disconnected(self, client, cmd):
        cmd.feed("CONNECTED N0CALL W1AW 500\r")
        future = client.disconnect()
        assert cmd.lines()[-1] == "DISCONNECT\r"
        cmd.feed("DISCONNECTED\r")
        assert future.result(timeout=0) is None
        assert client.state.connected is None

    def test_disconnect_acknowledged_with_ok(self):
        c = make_client(quirks=ModemQuirks(disconnect_acknowledged_with_ok=True))
        future = c.disconnect()
        c.command_transport.feed("OK\r")
        assert future.result(timeout=0) is None
        c.close()


class TestOperations:
    def test_chat_on_hf_is_not_acknowledged(self, client, cmd):
        future = client.chat_on()
        assert future.result(timeout=0) is None
        assert client.state.chat_on is True
        # A following OK belongs to the next command.
        listen = client.listen_on()
        cmd.feed("OK\r")
        assert listen.done()

    def test_chat_on_fm_waits_for_ok(self, fm_client):
        future = fm_client.chat_on()
        assert not future.done()
        fm_client.command_transport.feed("OK\r")
        assert future.done()

    def test_chat_off(self, client, cmd):
        assert client.state.chat_off is None
        client.chat_off()
        assert client.state.chat_off is True

    def test_send_cq_frame_resolves_on_ptt_off(self, client, cmd):
        future = client.send_cq_frame("N0CALL", 2300)
        assert cmd.lines() == ["CQFRAME N0CALL 2300\r"]
        cmd.feed("PTT ON\r")
        assert not future.done()
        cmd.feed("PTT OFF\r")
        assert future.result(timeout=0) is None

    def test_fm_cq_frame_with_relay(self, fm_client):
        fm_client.send_cq_frame("N0CALL", relay1="R1")
        assert fm_client.command_transport.lines() == ["CQFRAME N0CALL R1\r"]

    def test_tune(self, client, cmd):
        register(client, "N0CALL")
        tuning = client.set_tune(-12)
        cmd.feed("OK\r")
        assert tuning.done()
        assert client.state.tune == -12 and client.state.tune_on is True

        query = client.get_tune()
        assert cmd.lines()[-1] == "TUNE ?\r"
        cmd.feed("TUNE -8\r")
        assert query.result(timeout=0) == -8
        assert client.state.tune == -8

        off = client.tune_off()
        cmd.feed("OK\r")
        assert off.done()
        assert client.state.tune_off is True

    def test_fm_rejects_hf_only_commands(self, fm_client):
        with pytest.raises(VaraValidationError):
            fm_client.bw500()
        with pytest.raises(VaraValidationError):
            fm_client.p2p_session()
        assert fm_client.command_transport.written == []

    def test_sessions(self, client, cmd):
        client.p2p_session()
        assert client.state.p2p_session is True
        client.winlink_session()
        assert client.state.winlink_session is True
        assert cmd.lines() == ["P2P SESSION\r", "WINLINK SESSION\r"]

    @pytest.mark.parametrize("token, state", [
        ("OK", CleanTxBufferState.OK),
        ("BUFFEREMPTY", CleanTxBufferState.BUFFER_EMPTY),
    ])
    def test_purge_buffer_resolves(self, client, cmd, token, state):
        future = client.purge_buffer()
        cmd.feed(f"CLEANTXBUFFER {token}\r")
        assert future.result(timeout=0) is state

    def test_purge_buffer_failed(self, client, cmd):
        future = client.purge_buffer()
        cmd.feed("CLEANTXBUFFER FAILED\r")
        with pytest.raises(VaraCommandFailed):
            future.result(timeout=0)
        assert client.state.clean_tx_buffer is CleanTxBufferState.FAILED

    def test_abort(self, client, cmd):
        future = client.abort()
        cmd.feed("OK\r")
        assert future.done()
        assert cmd.lines() == ["ABORT\r"]


class TestNotifications:
    def test_state_follows_modem(self, client, cmd):
        cmd.feed("BUSY ON\rBUFFER 42\rSN 7\rBITRATE (3)  300\rIAMALIVE\r")
        assert client.state.busy_on is True
        assert client.state.buffer == 42
        assert client.state.sn == 7
        assert client.state.bitrate == BitrateData(3, 300)
        assert client.state.iamalive is not None
        assert client.state.command == "IAMALIVE"

    def test_unknown_line_still_published_as_command(self, client, cmd):
        seen = []
        client.on(EventKind.COMMAND, seen.append)
        cmd.feed("SOMETHING ELSE\r")
        assert [e.line for e in seen] == ["SOMETHING ELSE"]
        assert seen[0].value is None

    def test_typed_event_follows_command_event(self, client, cmd):
        order = []
        client.on(EventKind.COMMAND, lambda e: order.append("command"))
        client.on(EventKind.PTT_ON, lambda e: order.append("ptt"))
        cmd.feed("PTT ON\r")
        assert order == ["command", "ptt"]

    def test_once_and_off(self, client, cmd):
        hits, always = [], []
        client.once(EventKind.BUSY_ON, hits.append)
        sub = client.on(EventKind.BUSY_ON, always.append)
        cmd.feed("BUSY ON\rBUSY ON\r")
        client.off(sub)
        cmd.feed("BUSY ON\r")
        assert len(hits) == 1
        assert len(always) == 2

    def test_wait_for_with_predicate(self, client, cmd):
        future = client.wait_for(EventKind.BUFFER, lambda e: e.value == 0)
        cmd.feed("BUFFER 100\r")
        assert not future.done()
        cmd.feed("BUFFER 0\r")
        assert future.result(timeout=0).value == 0

    def test_wait_for_fails_when_closed(self, client):
        future = client.wait_for(EventKind.DISCONNECTED)
        client.close()
        with pytest.raises(VaraTransportError):
            future.result(timeout=0)


class TestDataPort:
    def test_send_text_and_bytes(self, client):
        assert client.send("héllo") == 6
        assert client.send(b"\x00\x01") == 2
        assert client.data_transport.written == ["héllo".encode("utf-8"), b"\x00\x01"]

    def test_received_data(self, client):
        seen = []
        client.on(EventKind.DATA, seen.append)
        client.data_transport.feed(b"payload\r\n")
        assert seen[0].value == b"payload\r\n"
        assert client.state.data == b"payload\r\n"
        assert client.decode(seen[0].value) == "payload\r\n"

    def test_send_when_closed(self, client):
        client.close()
        with pytest.raises(VaraTransportError):
            client.send("x")


class TestVariants:
    def test_sat_has_no_bandwidth(self):
        c = make_client(ModemVariant.SAT)
        assert c.state.bandwidth is None
        assert c.state.winlink_session is True
        c.close()

    def test_unknown_quirk_rejected(self):
        with pytest.raises(ValueError):
            VaraClient(quirks={"no_such_quirk": True}, transport_factory=FakeTransport)
