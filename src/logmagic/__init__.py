"""logmagic - tmux session capture toolkit."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("logmagic")
except PackageNotFoundError:
    __version__ = "0.0.0"
