"""entity-sync: copy WordPress custom-post-type entities between sites."""

__version__ = "0.3.0"
