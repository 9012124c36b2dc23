import socket
import threading
import logging

from peer.address import format_addr
from peer.handshake import AuthHandler, HandshakeError
from peer.stream import Stream

# Set up module-level logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)


class Host:
    """Hands out handshaken streams, inbound and outbound.

    Inbound connections are dispatched to the handler registered for the
    protocol id the dialer selected. Outbound streams are opened by peer id,
    looked up in the peerstore.
    """

    def __init__(self, identity, listen_host="0.0.0.0", listen_port=0, handshake_timeout=10.0):
        self.identity = identity
        self.peer_id = identity.peer_id
        self.listen_host = listen_host
        self.listen_port = listen_port
        self.handshake_timeout = handshake_timeout
        self.peerstore = {}       # {peer_id: (ip, port)}
        self.handlers = {}        # {protocol_id: handler(stream)}
        self.sock = None
        self._closed = threading.Event()

    def set_stream_handler(self, protocol, handler):
        self.handlers[protocol] = handler

    def add_addrs(self, peer_id, host, port):
        logger.debug(f"Peerstore: {peer_id} @ {host}:{port}")
        self.peerstore[peer_id] = (host, port)

    def listen(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.listen_host, self.listen_port))
        sock.listen()
        self.sock = sock
        self.listen_port = sock.getsockname()[1]
        logger.debug(f"Listening for incoming streams on {self.listen_host}:{self.listen_port}")
        threading.Thread(target=self.accept_loop, name="host-accept", daemon=True).start()
        return self.listen_port

    def addrs(self, host=None):
        return format_addr(host or self.listen_host, self.listen_port, self.peer_id)

    def accept_loop(self):
        while not self._closed.is_set():
            try:
                conn, addr = self.sock.accept()
            except OSError as e:
                if not self._closed.is_set():
                    logger.error(f"Accept failed: {e}")
                break
            logger.debug(f"Accepted connection from {addr}")
            threading.Thread(target=self.handle_conn, args=(conn, addr), daemon=True).start()

    def handle_conn(self, conn, addr):
        stream = Stream(conn)
        stream.set_timeout(self.handshake_timeout)
        try:
            remote_id, protocol = AuthHandler(self.identity).accept(stream, self.handlers)
        except (HandshakeError, OSError) as e:
            logger.error(f"Handshake with {addr} failed: {e}")
            stream.close()
            return
        stream.set_timeout(None)
        stream.remote_peer = remote_id
        stream.protocol = protocol
        self.add_addrs(remote_id, addr[0], addr[1])
        logger.info(f"New {protocol} stream from {remote_id} at {addr[0]}:{addr[1]}")
        self.handlers[protocol](stream)

    def new_stream(self, peer_id, protocol):
        """Dial peer_id and select protocol. Raises KeyError, OSError or HandshakeError."""
        try:
            ip, port = self.peerstore[peer_id]
        except KeyError:
            raise KeyError(f"no known address for peer {peer_id}") from None
        conn = socket.create_connection((ip, port), timeout=self.handshake_timeout)
        stream = Stream(conn)
        try:
            stream.remote_peer = AuthHandler(self.identity).dial(stream, peer_id, protocol)
        except (HandshakeError, OSError):
            stream.close()
            raise
        stream.set_timeout(None)
        stream.protocol = protocol
        logger.debug(f"Opened {protocol} stream to {peer_id} at {ip}:{port}")
        return stream

    def close(self):
        self._closed.set()
        if self.sock is not None:
            try:
                self.sock.shutdown(socket.SHUT_RDWR)  # wakes a blocked accept()
            except OSError:
                pass
            self.sock.close()
