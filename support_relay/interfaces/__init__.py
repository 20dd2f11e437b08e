"""
Abstract interfaces for the Support Relay system.

These interfaces define the contracts that concrete implementations
must adhere to, following the Dependency Inversion Principle.

This package contains:
- Repository interfaces for data access
- Provider interfaces for external collaborators (store, assistant, channel)
- Service interfaces for business logic components
"""
