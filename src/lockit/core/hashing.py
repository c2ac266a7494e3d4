""" Utility for hashing operations. """

import hashlib
import os
from pathlib import Path


def normalize_path(path) -> str:

    # Absolute, normalized text form of a path; symlinks are not resolved
    # because the folder may not exist when this is called.

    return os.path.normpath(os.path.abspath(os.fspath(Path(path).expanduser())))


def hash_path(path) -> str:

    # One-way identifier for a filesystem path, stable across runs.

    text = normalize_path(path)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
