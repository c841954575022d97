"""HostGuard — antivirus scanning, OS patching and service health for one host."""

__version__ = "2.1.0"
