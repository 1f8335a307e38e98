from importlib import metadata

try:
    __version__ = metadata.version("payflow")
except metadata.PackageNotFoundError:  # pragma: no cover - during local dev
    from payflow import __version__
