"""Environment helpers: Java discovery for Bio-Formats and logging setup."""

import os
import platform
import shutil
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

_JAVA_CONFIGURED = False


def locate_java_home() -> Optional[Path]:
    """Find a Java installation directory, or None."""
    java_home = os.environ.get("JAVA_HOME")
    if java_home and Path(java_home).exists():
        return Path(java_home)

    java_binary = "java.exe" if platform.system() == "Windows" else "java"

    # .../jdk-XX/bin/java -> .../jdk-XX
    java_exe = shutil.which("java")
    if java_exe:
        candidate = Path(os.path.realpath(java_exe)).parent.parent
        if (candidate / "bin" / java_binary).exists():
            return candidate

    if platform.system() == "Windows":
        for base in (
            Path(r"C:\Program Files\Java"),
            Path(r"C:\Program Files (x86)\Java"),
            Path(r"C:\ProgramData\Oracle\Java"),
        ):
            if not base.exists():
                continue
            for folder in sorted(base.iterdir()):
                if (folder / "bin" / java_binary).exists():
                    return folder

    return None


def _silence_bioformats_logging():
    """Silence Java logging from the loci package, if Bio-Formats is present."""
    try:
        import jpype
        import scyjava
    except ImportError:
        return

    try:
        scyjava.start_jvm()
        jpype.JPackage("loci").common.DebugTools.setRootLevel("OFF")
    except Exception as e:
        logger.debug(f"Could not silence Bio-Formats logging: {e}")


def ensure_java_home() -> None:
    """Export JAVA_HOME for bioio-bioformats once per process."""
    global _JAVA_CONFIGURED
    if _JAVA_CONFIGURED:
        return
    _JAVA_CONFIGURED = True

    if not os.environ.get("JAVA_HOME"):
        java_home = locate_java_home()
        if java_home:
            os.environ["JAVA_HOME"] = str(java_home)
            logger.debug(f"Auto-detected JAVA_HOME: {java_home}")
        else:
            logger.warning(
                "Could not auto-detect Java installation. bioio-bioformats may not work."
            )
            return

    _silence_bioformats_logging()


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a stderr sink at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=str(level).upper())
