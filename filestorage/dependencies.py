"""
FastAPI dependency injection functions.
Provides common dependencies used across endpoints.
"""

from typing import Annotated

from fastapi import Depends

from filestorage.config import Settings, get_settings
from filestorage.storage import FileStorage, get_storage


# Type aliases for cleaner endpoint signatures
Storage = Annotated[FileStorage, Depends(get_storage)]
AppSettings = Annotated[Settings, Depends(get_settings)]
