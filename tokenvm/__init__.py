"""State storage layout, address and ID encodings, and a JSON-RPC handler and client for a token virtual machine."""

__version__ = "0.0.1"
__all__ = ["client", "encoding", "errors", "server", "storage"]