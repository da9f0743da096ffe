"""Storage backends.  Importing this package registers them."""

from .local_dev import LocalDevStorage
from .vercel_blob import VercelBlobStorage

__all__ = ["LocalDevStorage", "VercelBlobStorage"]
