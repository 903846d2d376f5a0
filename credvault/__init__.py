"""Credential-record extraction for pasted account inventory text."""

from .parsers import CredentialRecord, detect_grammar, extract

__version__ = "0.1.0"
