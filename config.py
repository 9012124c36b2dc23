import os
import logging
import yaml

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)

DEFAULTS = {
    "peer_name": "peer",
    "key_path": "identity.pem",
    "listen_host": "0.0.0.0",
    "listen_port": 0,
    "receive_dir": "received",
    "chunk_size": 4096,
    "handshake_timeout": 10,
    "discovery_timeout": 2,
    "mdns": True,
}


def load_config(path):
    """Read a YAML config file over the defaults. A missing file means all defaults."""
    config = dict(DEFAULTS)
    if not os.path.exists(path):
        logger.debug(f"No config file at {path}, using defaults")
        return config

    with open(path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    for key, value in loaded.items():
        if key not in DEFAULTS:
            logger.warning(f"Unknown config key '{key}' in {path}, skipping")
            continue
        config[key] = value

    validate_config(config)
    return config


def validate_config(config):
    for key in ("peer_name", "key_path", "listen_host", "receive_dir"):
        if not isinstance(config[key], str) or not config[key]:
            raise ValueError(f"Config value '{key}' must be a non-empty string")
    for key in ("listen_port", "chunk_size"):
        if isinstance(config[key], bool) or not isinstance(config[key], int):
            raise ValueError(f"Config value '{key}' must be an integer")
    if not 0 <= config["listen_port"] < 65536:
        raise ValueError(f"listen_port out of range: {config['listen_port']}")
    if config["chunk_size"] <= 0:
        raise ValueError(f"chunk_size must be positive: {config['chunk_size']}")
    for key in ("handshake_timeout", "discovery_timeout"):
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValueError(f"Config value '{key}' must be a non-negative number")
    # 0 would switch the handshake socket to non-blocking mode
    if config["handshake_timeout"] == 0:
        raise ValueError("handshake_timeout must be greater than zero")
    if not isinstance(config["mdns"], bool):
        raise ValueError("Config value 'mdns' must be true or false")
