import base64
import binascii
import json
import secrets
import logging

from crypto.identity import Identity, peer_id_from_public_bytes

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)

MAX_MESSAGE = 64 * 1024


class HandshakeError(Exception):
    pass


def send_json(stream, obj):
    """
    Serialize and send a JSON object over a stream, ending with a newline.
    """
    message = json.dumps(obj) + '\n'  # newline as delimiter
    try:
        stream.writer.write(message.encode('utf-8'))
        stream.writer.flush()
    except OSError as e:
        raise HandshakeError(f"Failed to send {obj.get('type')}: {e}") from e


def recv_json(stream):
    """
    Receive one newline-delimited JSON object from a stream.

    Reads through the stream's buffered reader, so bytes the peer sends right
    after the message stay available to whoever reads next.
    """
    try:
        line = stream.reader.readline(MAX_MESSAGE)
    except OSError as e:
        raise HandshakeError(f"Failed to receive handshake message: {e}") from e
    if not line:
        raise HandshakeError("Stream closed while receiving handshake message.")
    if not line.endswith(b'\n'):
        raise HandshakeError("Handshake message too long.")
    try:
        msg = json.loads(line.decode('utf-8'))
    except ValueError as e:
        raise HandshakeError(f"Invalid handshake message: {e}") from e
    if not isinstance(msg, dict):
        raise HandshakeError("Handshake message is not an object.")
    return msg


def expect(stream, msg_type):
    msg = recv_json(stream)
    if msg.get("type") != msg_type:
        raise HandshakeError(f"Expected {msg_type}, got {msg.get('type')}")
    return msg


def b64field(msg, key):
    try:
        return base64.b64decode(msg[key], validate=True)
    except (KeyError, TypeError, binascii.Error) as e:
        raise HandshakeError(f"Bad or missing field '{key}' in {msg.get('type')}") from e


class AuthHandler:
    """Mutual challenge signing followed by protocol selection.

    The dialer checks that the listener owns the key behind the peer id it
    meant to reach; the listener learns the dialer's peer id and which
    protocol the stream is for.
    """

    def __init__(self, identity: Identity):
        self.identity = identity

    def dial(self, stream, expected_peer_id, protocol):
        """Initiator side. Returns the remote peer id."""
        logger.debug(f"Starting handshake with {expected_peer_id} for {protocol}")
        my_challenge = secrets.token_bytes(32)
        send_json(stream, {
            "type": "AUTH_REQ",
            "public_key": base64.b64encode(self.identity.get_public_key_bytes()).decode(),
            "challenge": base64.b64encode(my_challenge).decode()
        })

        response = expect(stream, "AUTH_RESP")
        peer_pub = b64field(response, "public_key")
        if not Identity.verify(b64field(response, "signed_challenge"), my_challenge, peer_pub):
            raise HandshakeError("Failed to verify peer signature")
        remote_id = peer_id_from_public_bytes(peer_pub)
        if expected_peer_id and remote_id != expected_peer_id:
            raise HandshakeError(f"Peer id mismatch: expected {expected_peer_id}, got {remote_id}")

        send_json(stream, {
            "type": "CHALLENGE_RESPONSE",
            "signed_challenge": base64.b64encode(self.identity.sign(b64field(response, "challenge"))).decode()
        })

        send_json(stream, {"type": "PROTOCOL_SELECT", "protocol": protocol})
        reply = recv_json(stream)
        if reply.get("type") == "PROTOCOL_NA":
            raise HandshakeError(f"Peer {remote_id} does not speak {protocol}")
        if reply.get("type") != "PROTOCOL_ACK":
            raise HandshakeError(f"Expected PROTOCOL_ACK, got {reply.get('type')}")

        logger.debug(f"Handshake with {remote_id} completed")
        return remote_id

    def accept(self, stream, protocols):
        """Responder side. Returns (remote peer id, selected protocol)."""
        logger.debug("Waiting for AUTH_REQ")
        request = expect(stream, "AUTH_REQ")
        peer_pub = b64field(request, "public_key")
        my_challenge = secrets.token_bytes(32)
        send_json(stream, {
            "type": "AUTH_RESP",
            "public_key": base64.b64encode(self.identity.get_public_key_bytes()).decode(),
            "signed_challenge": base64.b64encode(self.identity.sign(b64field(request, "challenge"))).decode(),
            "challenge": base64.b64encode(my_challenge).decode()
        })

        challenge_resp = expect(stream, "CHALLENGE_RESPONSE")
        if not Identity.verify(b64field(challenge_resp, "signed_challenge"), my_challenge, peer_pub):
            raise HandshakeError("Failed to verify initiator's signature")
        remote_id = peer_id_from_public_bytes(peer_pub)

        select = expect(stream, "PROTOCOL_SELECT")
        protocol = select.get("protocol")
        if not isinstance(protocol, str) or protocol not in protocols:
            send_json(stream, {"type": "PROTOCOL_NA"})
            raise HandshakeError(f"Peer {remote_id} asked for unsupported protocol {protocol!r}")
        send_json(stream, {"type": "PROTOCOL_ACK", "protocol": protocol})

        logger.debug(f"Handshake with {remote_id} completed for {protocol}")
        return remote_id, protocol
