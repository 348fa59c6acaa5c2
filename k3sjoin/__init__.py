# pylint: disable=missing-docstring
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version('k3sjoin')
except PackageNotFoundError:
    __version__ = '0.1.0'
