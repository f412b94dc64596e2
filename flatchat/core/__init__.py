"""
Core configuration and shared primitives for the service.

Modules:
- config: global settings, paths, limits (env-overridable).
- errors: chat refusal taxonomy and the ChatError exception.
- observability: logging setup, component loggers, request correlation.
- file_locks: bounded shared/exclusive advisory locks.
- storage_utils: file bootstrap, atomic writes, tolerant JSON loading.
"""
