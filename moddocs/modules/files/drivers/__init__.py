"""
Storage drivers package.

Contains implementations of different storage backends and the factory
that picks one for a mod.
"""

from moddocs.core.config import Settings, get_settings
from moddocs.modules.mods.models import StorageDriver

from .base import BaseStorageDriver, StorageError, StorageObjectNotFound
from .local import LocalStorageDriver
from .s3 import S3StorageDriver


def get_storage_driver(driver: StorageDriver, settings: Settings = None) -> BaseStorageDriver:
    """Build the driver named by a mod's ``storage_driver`` setting."""
    settings = settings or get_settings()
    driver = StorageDriver(driver)

    if driver == StorageDriver.S3:
        return S3StorageDriver(
            bucket_name=settings.s3_bucket_name,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    return LocalStorageDriver(settings.local_storage_root, settings.local_storage_url)


__all__ = [
    "BaseStorageDriver",
    "LocalStorageDriver",
    "S3StorageDriver",
    "StorageError",
    "StorageObjectNotFound",
    "get_storage_driver",
]
