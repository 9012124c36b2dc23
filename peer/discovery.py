from zeroconf import Zeroconf, ServiceBrowser, ServiceListener
import socket
import time

from peer.broadcast import SERVICE_TYPE


class DiscoveryListener(ServiceListener):
    def __init__(self, on_peer=None):
        self.peers = {}   # {peer_id: (ip, port)}
        self.names = {}   # {service name: peer_id}
        self.on_peer = on_peer

    def add_service(self, zeroconf, type, name):
        info = zeroconf.get_service_info(type, name)
        if not info or not info.addresses:
            return
        raw_id = info.properties.get(b"peer_id")
        if not raw_id:
            return
        peer_id = raw_id.decode()
        ip = socket.inet_ntoa(info.addresses[0])
        self.peers[peer_id] = (ip, info.port)
        self.names[name] = peer_id
        print(f"Found peer: {name.split('.')[0]} ({peer_id}) at {ip}:{info.port}")
        if self.on_peer:
            self.on_peer(peer_id, ip, info.port)

    def update_service(self, zeroconf, type, name):
        self.add_service(zeroconf, type, name)

    def remove_service(self, zeroconf, type, name):
        peer_id = self.names.pop(name, None)
        if peer_id in self.peers:
            del self.peers[peer_id]
            print(f"Peer left: {name.split('.')[0]}")


class Discovery:
    def __init__(self, discovery_timeout, on_peer=None):
        self.zeroconf = Zeroconf()
        self.peer_listener = DiscoveryListener(on_peer)
        self.browser = None
        self.discovery_timeout = discovery_timeout

    def start_service(self):
        #watches local network for peers
        print("Discovery started...")
        self.browser = ServiceBrowser(self.zeroconf, SERVICE_TYPE, self.peer_listener)
        time.sleep(self.discovery_timeout)

    def get_peers(self):
        return self.peer_listener.peers

    def stop(self):
        self.zeroconf.close()
