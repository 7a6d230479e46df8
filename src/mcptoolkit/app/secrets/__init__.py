"""Secrets vault package."""

from .vault import SecretsVault

__all__ = ["SecretsVault"]
