"""Credential protection for the stored Azure DevOps PAT."""

from adosync.security.cipher import KEY_STORAGE_NAME, CredentialCipher, base64_encode

__all__ = [
    "KEY_STORAGE_NAME",
    "CredentialCipher",
    "base64_encode",
]
