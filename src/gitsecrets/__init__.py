"""
gitsecrets: encrypted secret files, synchronized through Git.

Certificates, keys and JSON configs live AES-256-GCM encrypted inside an
ordinary Git repository. Pull decrypts them into a local directory,
push encrypts the local directory back into the repository.
"""

__version__ = "0.1.0"
__author__ = "gitsecrets contributors"

ARTIFACT_SUFFIX = ".enc"
CONFIG_FILE_NAME = ".gitsecretsrc"
DEFAULT_BRANCH = "main"
DEFAULT_LOCAL_PATH = "./secrets"
DEFAULT_BACKUP_COUNT = 3
