"""
Keynest credential-security engine
Copyright (c) 2025

LEGAL NOTICE AND THREAT MODEL:
This engine is for personal use only. It operates on vault data that has already
been decrypted by the storage backend on the device where it is installed. It
never transmits data off the device, never writes vault data to disk itself, and
never logs passwords, OTP secrets or clipboard contents.
"""

__version__ = "0.3.0"
