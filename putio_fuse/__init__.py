"""putiofs: mount a put.io account as a FUSE filesystem."""

__version__ = "0.1.0"
