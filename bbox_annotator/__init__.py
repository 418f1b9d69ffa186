import bbox_annotator.utils.i18n  # noqa: F401

from pathlib import Path

__version__ = (Path(__file__).parent / "VERSION").read_text().strip()
