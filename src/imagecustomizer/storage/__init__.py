"""Remote artifact storage."""

from imagecustomizer.storage.azure_blob import AccessType, AzureBlobStorage

__all__ = [
    "AccessType",
    "AzureBlobStorage",
]
