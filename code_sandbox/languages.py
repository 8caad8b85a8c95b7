import enum
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .core.config import Settings

logger = logging.getLogger(__name__)


class Language(str, enum.Enum):
    python = "python"
    javascript = "javascript"
    java = "java"
    cpp = "cpp"


@dataclass(frozen=True)
class LanguageProfile:
    language: Language
    image: str
    run_command: str
    source_name: str
    compile_command: Optional[str] = None

    @property
    def compiled(self) -> bool:
        return bool(self.compile_command)


def build_profiles(settings: Settings) -> Dict[Language, LanguageProfile]:
    """One profile per ``Language`` member; commands address the mount path."""
    mount = settings.MOUNT_PATH
    return {
        Language.python: LanguageProfile(
            language=Language.python,
            image=settings.PYTHON_IMAGE,
            run_command=f'python3 {mount}/main.py',
            source_name='main.py',
        ),
        Language.javascript: LanguageProfile(
            language=Language.javascript,
            image=settings.JAVASCRIPT_IMAGE,
            run_command=f'node {mount}/main.js',
            source_name='main.js',
        ),
        Language.java: LanguageProfile(
            language=Language.java,
            image=settings.JAVA_IMAGE,
            compile_command=f'javac {mount}/Main.java',
            run_command=f'java -cp {mount} Main',
            source_name='Main.java',
        ),
        Language.cpp: LanguageProfile(
            language=Language.cpp,
            image=settings.CPP_IMAGE,
            compile_command=f'g++ -O2 -std=gnu++17 {mount}/main.cpp -o {mount}/main.out',
            run_command=f'{mount}/main.out',
            source_name='main.cpp',
        ),
    }


class LanguageRegistry:
    def __init__(self, settings: Settings):
        self._profiles = build_profiles(settings)
        missing = set(Language) - set(self._profiles)
        if missing:
            raise RuntimeError(f'no profile for {sorted(m.value for m in missing)}')
        self._default = Language(settings.DEFAULT_LANGUAGE.lower())

    @property
    def default(self) -> LanguageProfile:
        return self._profiles[self._default]

    def resolve(self, language_id: Optional[str]) -> LanguageProfile:
        """Never fails: unknown identifiers get the default profile."""
        key = (language_id or '').strip().lower()
        try:
            lang = Language(key)
        except ValueError:
            logger.info('unsupported language %r, falling back to %s', language_id, self._default.value)
            return self.default
        return self._profiles[lang]
