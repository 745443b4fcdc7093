"""syncwatch - Mirror a local directory tree to a remote target."""

__version__ = "0.4.0"
