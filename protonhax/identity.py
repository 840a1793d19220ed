"""Identity strings shared by the CLI and packaging."""

__codename__ = "protonhax"
__version__ = "1.2.0"
__tagline__ = "Run other programs inside a running Proton game's context"
