# vara/transport.py
import socket
import threading
from typing import Callable, Optional

from loghandler import get_logger


class StreamTransport:
    """
    One TCP socket to the VARA modem.

    Responsibilities:
      - Open/close the socket with low-latency and keepalive options.
      - Background listener pushing every received chunk, in order, to
        `chunk_callback` (runs on the listener thread).
      - Thread-safe write().
      - Report an unexpected close (peer EOF or socket error) exactly once via
        `closed_callback(name, error)`. A local disconnect() is not reported.

    Framing and protocol knowledge live above this class.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        name: str = "command",
        connect_timeout: float = 5.0,
        recv_timeout: float = 0.5,
        debug: bool = False,
        chunk_callback: Optional[Callable[[bytes], None]] = None,
        closed_callback: Optional[Callable[[str, Optional[BaseException]], None]] = None,
    ):
        self.host = host
        self.port = int(port)
        self.name = name
        self.connect_timeout = float(connect_timeout)
        self.recv_timeout = float(recv_timeout)
        self.debug = debug

        self._logger = get_logger()
        self._sock: Optional[socket.socket] = None
        self._sock_lock = threading.Lock()
        self._connected = False

        self._listener: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

        self._chunk_cb = chunk_callback
        self._closed_cb = closed_callback

    # ---------- Public properties ----------

    @property
    def connected(self) -> bool:
        return self._connected

    # ---------- TCP setup ----------

    def _apply_tcp_options(self, s: socket.socket):
        """Best-effort low-latency + keepalive socket options."""
        try:
            s.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass
        try:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        except OSError:
            pass
        for opt, val in (("TCP_KEEPIDLE", 30), ("TCP_KEEPINTVL", 10), ("TCP_KEEPCNT", 3)):
            if hasattr(socket, opt):
                try:
                    s.setsockopt(socket.IPPROTO_TCP, getattr(socket, opt), val)
                except OSError:
                    pass

    def connect(self):
        """Open the socket and start the listener thread."""
        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._apply_tcp_options(s)
        s.settimeout(self.connect_timeout)
        try:
            s.connect((self.host, self.port))
        except socket.timeout:
            s.close()
            self._logger.error(
                f"[NET] {self.name}: connect timeout after {self.connect_timeout:.1f}s to {self.host}:{self.port}."
            )
            raise
        except OSError as e:
            s.close()
            self._logger.error(f"[NET] {self.name}: connect error to {self.host}:{self.port}: {e}")
            raise

        # Shorter read timeout for a responsive listener.
        s.settimeout(self.recv_timeout)
        with self._sock_lock:
            self._sock = s
        self._connected = True
        self._logger.debug(f"[NET] {self.name} socket open to {self.host}:{self.port}")

        self._stop_evt.clear()
        self._listener = threading.Thread(
            target=self._listener_loop, name=f"vara-{self.name}", daemon=True
        )
        self._listener.start()

    def disconnect(self):
        """Stop the listener and close the socket. Safe to call twice."""
        self._stop_evt.set()
        listener = self._listener
        if listener and listener.is_alive() and listener is not threading.current_thread():
            listener.join(timeout=1.0)
        self._close_socket()

    close = disconnect

    def _close_socket(self):
        with self._sock_lock:
            try:
                if self._sock:
                    try:
                        self._sock.shutdown(socket.SHUT_RDWR)
                    except OSError:
                        pass
                    self._sock.close()
            finally:
                self._sock = None
                self._connected = False

    # ---------- I/O ----------

    def write(self, data: bytes) -> None:
        with self._sock_lock:
            s = self._sock
            if not s:
                raise ConnectionError(f"{self.name} socket is not connected")
            s.sendall(data)

    def _listener_loop(self):
        """Read chunks and hand them to the callback until stopped or closed."""
        error: Optional[BaseException] = None
        try:
            while not self._stop_evt.is_set():
                s = self._sock
                if s is None:
                    break
                try:
                    chunk = s.recv(4096)
                except socket.timeout:
                    continue
                except OSError as e:
                    error = e
                    break

                if not chunk:
                    error = ConnectionError(f"{self.name} socket closed by peer")
                    break

                if self.debug:
                    self._logger.debug(f"[RECV:{self.name}] {chunk!r}")

                if self._chunk_cb:
                    try:
                        self._chunk_cb(chunk)
                    except Exception as e:
                        # Parser bugs should not kill the network loop.
                        self._logger.error(f"[PARSER] {self.name} callback failed: {e}")
        finally:
            local_stop = self._stop_evt.is_set()
            self._close_socket()
            if not local_stop:
                self._logger.error(f"[NET] {self.name} listener stopped: {error}. Closing connection.")
                if self._closed_cb:
                    try:
                        self._closed_cb(self.name, error)
                    except Exception as e:
                        self._logger.error(f"[NET] {self.name} close callback failed: {e}")
