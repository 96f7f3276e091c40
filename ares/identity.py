"""ARES identity strings shared by the CLI and banners."""

__codename__ = "ARES"
__tagline__ = "Route. Fall back. Verify."
__version__ = "0.4.0"

BANNER = r"""
    _    ____  _____ ____
   / \  |  _ \| ____/ ___|
  / _ \ | |_) |  _| \___ \
 / ___ \|  _ <| |___ ___) |
/_/   \_\_| \_\_____|____/
"""
