from .settings import ProtocolConfig, TokenConfig, load_config

__all__ = ["ProtocolConfig", "TokenConfig", "load_config"]
