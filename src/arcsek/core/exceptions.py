"""
Exceptions for the arcsek vault pipeline
Everything derives from ArcsekError so callers have one general error catcher
"""


class ArcsekError(Exception):
    # general container for errors
    pass


class InvalidKeyLengthError(ArcsekError, ValueError):
    # raised when a key is not exactly 16 or 32 bytes (checked before any I/O)
    pass


class SourceUnavailableError(ArcsekError):
    # raised when a path handed to the packer cannot be read
    pass


class StagingError(ArcsekError):
    # raised when the ephemeral staging file misbehaves in some way
    pass


class StagingCreateFailedError(StagingError):
    # raised when the staging file cannot be created
    pass


class StagingDeleteFailedError(StagingError):
    # raised when close cannot release and delete the staging file
    pass


class TruncatedStreamError(ArcsekError):
    # raised when a ciphertext stream is shorter than one nonce
    pass


class AuthenticationFailedError(ArcsekError):
    # raised when a segment fails verification; fatal for the stream
    pass


class StreamLimitError(ArcsekError):
    # raised when the segment counter would overflow
    pass


class ArchiveFormatError(ArcsekError):
    # raised when authenticated plaintext is not a readable archive
    pass


class KeystoreError(ArcsekError):
    # raised when the OS keystore is missing or refuses an operation
    pass
