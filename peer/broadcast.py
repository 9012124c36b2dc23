from zeroconf import ServiceInfo, Zeroconf
import socket

SERVICE_TYPE = "_p2pchat._tcp.local."


class Broadcast():
    def __init__(self, peer_name, port, peer_id):
        self.peer_name = peer_name
        self.port = port
        self.peer_id = peer_id
        self.zeroconf = Zeroconf()
        self.service_info = None

    #Starts zeroconf Mdns, announcing this peer and its id
    def start_service(self):
        hostname = socket.gethostname()
        ip_addr = socket.gethostbyname(hostname)

        self.service_info = ServiceInfo(
            type_=SERVICE_TYPE,
            name=f"{self.peer_name}.{SERVICE_TYPE}",
            addresses=[socket.inet_aton(ip_addr)],
            port=self.port,
            properties={"peer_id": self.peer_id},
            server=f"{hostname}.local.",
        )

        print(f"Broadcasting {self.peer_name} ({self.peer_id}) at {ip_addr}:{self.port}")

        self.zeroconf.register_service(self.service_info)
        return ip_addr

    def stop_service(self):
        if self.service_info:
            self.zeroconf.unregister_service(self.service_info)
        self.zeroconf.close()
