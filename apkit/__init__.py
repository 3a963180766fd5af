"""Alpine APK versions, repositories, dependency resolution and package files."""

__version__ = "0.1.0"