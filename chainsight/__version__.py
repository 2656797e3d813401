"""Version information for chainsight."""
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version


def get_version() -> str:
    """Read the version of the installed distribution, or a dev marker when running from a checkout."""
    try:
        return version('chainsight')
    except PackageNotFoundError:
        return '0.0.0-dev'


__version__ = get_version()
