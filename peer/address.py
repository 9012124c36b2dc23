"""Textual peer addresses of the form /ip4/<host>/tcp/<port>/p2p/<peer_id>."""


def format_addr(host, port, peer_id):
    return f"/ip4/{host}/tcp/{port}/p2p/{peer_id}"


def parse_addr(addr):
    """Return (host, port, peer_id) for a full peer address.

    Raises ValueError if the address does not have exactly that shape.
    """
    parts = addr.strip().split("/")
    if len(parts) != 7 or parts[0] != "" or parts[1] != "ip4" or parts[3] != "tcp" or parts[5] != "p2p":
        raise ValueError(f"invalid peer address: {addr!r}")
    host, port, peer_id = parts[2], parts[4], parts[6]
    if not host or not peer_id:
        raise ValueError(f"invalid peer address: {addr!r}")
    if not (port.isascii() and port.isdigit()) or not 0 < int(port) < 65536:
        raise ValueError(f"invalid port in peer address: {addr!r}")
    return host, int(port), peer_id
