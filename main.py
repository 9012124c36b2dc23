#main.py  ==  peer-to-peer chat with file transfer
           #↳ loads config and identity
           #↳ listens for chat streams, or dials one
           #↳ runs one chat session per stream on the terminal
import argparse
import os
import sys
import threading
import logging

from config import load_config
from crypto.identity import Identity
from peer.address import parse_addr
from peer.handshake import HandshakeError
from peer.host import Host
from protocol.console import Console
from protocol.session import PROTOCOL_ID, handle_stream

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Peer-to-peer chat with file transfer.")
    p.add_argument("--config", default="config.yaml")
    p.add_argument("-sp", "--source-port", type=int, help="listen port, overrides the config")
    p.add_argument("-d", "--dest", help="peer address /ip4/<ip>/tcp/<port>/p2p/<id>, or a bare peer id to find via mDNS")
    p.add_argument("--debug", action="store_true", help="derive the identity from the listen port")
    return p.parse_args(argv)


def run_session(stream, config, console):
    session = handle_stream(stream, console, config["receive_dir"], config["chunk_size"])
    session.wait()
    session.close()
    console.notify(f"Session with {stream.remote_peer} ended.")


def run_listener(host, config, console):
    host.set_stream_handler(PROTOCOL_ID, lambda stream: run_session(stream, config, console))
    broadcast = None
    if config["mdns"]:
        from peer.broadcast import Broadcast
        broadcast = Broadcast(config["peer_name"], host.listen_port, host.peer_id)
        broadcast.start_service()

    print(f"Run 'python main.py -d {host.addrs('127.0.0.1')}' on another console.")
    print("You can replace 127.0.0.1 with public IP as well.")
    print("\nWaiting for incoming connection\n")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        print("\nInterrupted. Exiting")
    finally:
        if broadcast:
            broadcast.stop_service()
    return 0


def run_dialer(host, config, console, dest):
    print("This node's address:")
    print(f" - {host.addrs()}\n")

    if dest.startswith("/"):
        try:
            ip, port, peer_id = parse_addr(dest)
        except ValueError as e:
            print(f"[!] {e}")
            return 2
        host.add_addrs(peer_id, ip, port)
    elif config["mdns"]:
        from peer.discovery import Discovery
        peer_id = dest
        discovery = Discovery(config["discovery_timeout"], on_peer=host.add_addrs)
        discovery.start_service()
        discovery.stop()
    else:
        print("[!] A bare peer id needs mdns enabled in the config.")
        return 2

    try:
        stream = host.new_stream(peer_id, PROTOCOL_ID)
    except (KeyError, OSError, HandshakeError) as e:
        logger.error(f"Could not open stream to {peer_id}: {e}")
        print(f"[!] Could not connect to {peer_id}: {e}")
        return 1

    try:
        run_session(stream, config, console)
    except KeyboardInterrupt:
        print("\nInterrupted. Exiting")
    return 0


def main(argv=None):
    args = parse_args(argv)
    config = load_config(args.config)
    if args.source_port is not None:
        config["listen_port"] = args.source_port

    if args.debug:
        identity = Identity.deterministic(config["listen_port"])
    else:
        identity = Identity.load(config["key_path"])
    os.makedirs(config["receive_dir"], exist_ok=True)

    host = Host(identity, config["listen_host"], config["listen_port"], config["handshake_timeout"])
    host.listen()
    console = Console()
    try:
        if args.dest:
            return run_dialer(host, config, console, args.dest)
        return run_listener(host, config, console)
    finally:
        host.close()


if __name__ == "__main__":
    sys.exit(main())
