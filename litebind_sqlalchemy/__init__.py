from .dialect import LitebindDialect

__all__ = ["LitebindDialect"]
