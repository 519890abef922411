"""TLS chat client and server building blocks with text, file and WAV audio transfer."""

__version__ = "0.1.0"