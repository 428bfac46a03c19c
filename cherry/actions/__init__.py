from .build import Build
from .release import Release
from .test import Test
from .update import Update

__all__ = ["Build", "Release", "Test", "Update"]
