"""
Data models shared across the sync engine.

Artifacts moving in and out of the repository, verification results,
and the state enums of the Git working tree.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class GitState(str, Enum):
    """Lifecycle of a GitSyncManager working tree.

    Pull path: UNINITIALIZED -> CLONED -> BRANCH_READY -> SYNCED.
    Push path continues SYNCED -> STAGED -> COMMITTED -> PUSHED.
    CLEANED is terminal and reachable from every state.
    """

    UNINITIALIZED = "uninitialized"
    CLONED = "cloned"
    BRANCH_READY = "branch_ready"
    SYNCED = "synced"
    STAGED = "staged"
    COMMITTED = "committed"
    PUSHED = "pushed"
    CLEANED = "cleaned"


class SshKeySource(str, Enum):
    """Where the SSH identity for git comes from."""

    EXPLICIT_PATH = "explicit_path"
    INLINE = "inline"
    AMBIENT = "ambient"


class EncryptedArtifact(BaseModel):
    """An encrypted file read out of the working tree.

    Attributes:
        name: POSIX path relative to the working tree, ending in ``.enc``.
        content: Raw bytes of the artifact (base64 text).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    content: bytes


class ArtifactPayload(BaseModel):
    """An encrypted file to be written into the working tree."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str


class VerificationResult(BaseModel):
    """Outcome of CryptoEngine.verify_detailed."""

    valid: bool = False
    structure_valid: bool = False
    decryption_valid: bool = False
    error: Optional[str] = None


class FileCheck(BaseModel):
    """Outcome of the file-type plausibility check on a local secret."""

    valid: bool = False
    exists: bool = False
    readable: bool = False
    non_empty: bool = False
    type_valid: bool = False
    size: int = 0
    error: Optional[str] = None
