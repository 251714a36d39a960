"""라우터 패키지."""
from hf_relay.routers import diagnostics, embed

__all__ = ["diagnostics", "embed"]
