"""
RepoDigest - classified daily digests from repository activity.

Pipeline version: 0.3.0
Schema version: 1.0 (Digest)
"""

__version__ = "0.3.0"
PIPELINE_VERSION = "0.3.0"
SCHEMA_VERSION = "1.0"

__all__ = [
    "__version__",
    "PIPELINE_VERSION",
    "SCHEMA_VERSION",
]
