from .table import LocalTable

__all__ = ["LocalTable"]
