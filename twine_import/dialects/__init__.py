"""
Dialect converters: one per supported story format.
"""

from twine_import.dialects.base import DialectConverter
from twine_import.dialects.chapbook import ChapbookConverter
from twine_import.dialects.harlowe import HarloweConverter
from twine_import.dialects.sugarcube import SugarCubeConverter
from twine_import.models import Dialect

CONVERTERS = {
    Dialect.HARLOWE: HarloweConverter,
    Dialect.SUGARCUBE: SugarCubeConverter,
    Dialect.CHAPBOOK: ChapbookConverter,
}


def get_converter(dialect: Dialect) -> DialectConverter:
    """Return a converter instance for a detected dialect."""
    return CONVERTERS[dialect]()


__all__ = [
    'CONVERTERS',
    'ChapbookConverter',
    'DialectConverter',
    'HarloweConverter',
    'SugarCubeConverter',
    'get_converter',
]
