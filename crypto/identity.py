import os
import base64
import hashlib
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey


def peer_id_from_public_bytes(pub_bytes: bytes) -> str:
    digest = hashlib.sha256(pub_bytes).digest()
    return base64.b32encode(digest).decode().rstrip("=").lower()


class Identity:
    def __init__(self, private_key):
        self.private_key = private_key
        self.public_key = self.private_key.public_key()
        self.peer_id = peer_id_from_public_bytes(self.get_public_key_bytes())

    @classmethod
    def load(cls, key_path):
        """Load the key stored at key_path, generating and saving one on first use."""
        if os.path.exists(key_path):
            with open(key_path, "rb") as f:
                private_key = serialization.load_pem_private_key(f.read(), password=None)
            if not isinstance(private_key, Ed25519PrivateKey):
                raise ValueError(f"{key_path} does not hold an Ed25519 private key")
            return cls(private_key)

        private_key = Ed25519PrivateKey.generate()
        key_dir = os.path.dirname(key_path)
        if key_dir:
            os.makedirs(key_dir, exist_ok=True)
        with open(key_path, "wb") as f:
            f.write(private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption()
            ))
        return cls(private_key)

    @classmethod
    def deterministic(cls, seed: int):
        # Same seed, same peer id on every run. Debugging only.
        raw = hashlib.sha256(str(seed).encode()).digest()
        return cls(Ed25519PrivateKey.from_private_bytes(raw))

    def sign(self, message: bytes) -> bytes:
        return self.private_key.sign(message)

    @staticmethod
    def verify(signature: bytes, message: bytes, peer_pub_bytes: bytes) -> bool:
        try:
            peer_pub_key = Ed25519PublicKey.from_public_bytes(peer_pub_bytes)
            peer_pub_key.verify(signature, message)
            return True
        except (InvalidSignature, ValueError):
            return False

    def get_public_key_bytes(self):
        # Use raw encoding for consistency
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )
