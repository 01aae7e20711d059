"""Video recipe extraction services.

Import submodules directly; ``core.error_handler`` depends on
``services.extraction.exceptions`` so this package must stay import-free.
"""
