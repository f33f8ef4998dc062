"""Content-family processors."""  # noqa: N999

from .base import Collected, ContentFamilyProcessor
from .highlights import HighlightProcessor
from .lists import ListProcessor
from .tables import TableProcessor
from .text import TextBlockProcessor

__all__ = [
    "Collected",
    "ContentFamilyProcessor",
    "HighlightProcessor",
    "ListProcessor",
    "TableProcessor",
    "TextBlockProcessor",
]
