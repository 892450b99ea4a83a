from .local_codebase_scanner import LocalCodebaseScanner

__all__ = ['LocalCodebaseScanner']
