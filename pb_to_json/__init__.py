"""Top-level package for pb_to_json."""

__version__ = '0.1.0'

from pb_to_json.pb_to_json import (  # noqa: F401
    convert,
    add_repeated,
    Converter,
    ConverterOptions,
    ConversionResult,
    MalformedLine,
    MalformedLineError,
    MalformedLinePolicy,
)
