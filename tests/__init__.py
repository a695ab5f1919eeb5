"""
Backup Handler Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (in-memory backends, in-process HTTP)
- e2e/: End-to-end tests (running service and Kafka)
"""
