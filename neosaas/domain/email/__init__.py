"""Email domain - provider credentials, providers and the fallback router"""

__all__ = []
