"""umbpack.

Packs an Umbraco package folder (files plus a ``package.xml`` manifest) into a
flat, installable ``.zip`` archive, and uploads finished archives to
our.umbraco.com.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
