"""Language strategies and the extension-based registry."""
import logging
import os
from typing import List, Optional

from ..cache import IoCache
from ..config import Settings
from ..executor import ProcessExecutor
from .base import CompileOptions, Lang, LangCompileData
from .c import LangC
from .cpp import LangCpp
from .java import LangJava
from .javascript import LangJavascript
from .python import LangPython

logger = logging.getLogger(__name__)

LANG_TYPES = [LangCpp, LangC, LangJava, LangPython, LangJavascript]


class LangRegistry:
    def __init__(self, settings: Settings, executor: ProcessExecutor, cache: IoCache):
        self.langs: List[Lang] = [lang_type(settings, executor, cache) for lang_type in LANG_TYPES]

    def get_lang(self, file_path: str, ignore_error: bool = False) -> Optional[Lang]:
        """Pick the language whose extension list matches ``file_path``."""
        ext = os.path.splitext(file_path)[1].lower().lstrip(".")
        for lang in self.langs:
            if ext in lang.extensions:
                return lang
        if not ignore_error:
            logger.error("Cannot determine the programming language of %s", os.path.basename(file_path))
        return None


__all__ = [
    "CompileOptions",
    "Lang",
    "LangC",
    "LangCompileData",
    "LangCpp",
    "LangJava",
    "LangJavascript",
    "LangPython",
    "LangRegistry",
]
