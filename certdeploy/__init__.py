"""certdeploy — install getssl-issued certificates, keys and DH parameters."""

__version__ = "0.1.0"
