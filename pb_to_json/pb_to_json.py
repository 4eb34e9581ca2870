"""Main module."""
import json
import os
from enum import Enum
from typing import NamedTuple, List, Union, Dict, Optional, Any, MutableMapping

from pydantic import BaseModel, Field, field_validator

from pb_to_json.yaml import dump_yaml

JsonValue = Union[str, List[Any], Dict[str, Any]]
Document = Dict[str, JsonValue]

BLOCK_OPEN = '{'
BLOCK_CLOSE = '}'
FIELD_SEPARATOR = ':'
QUOTE = '"'
# only \n ends a line, a trailing \r goes with the rest of the whitespace
LINE_SEPARATOR = '\n'


class EnvVariable:
    registry: List['EnvVariable'] = []

    def __init__(self, env_name: str, default: str, description: str):
        self.env_name = env_name
        self.default = default
        self.description = description

        self.registry.append(self)

    def get_value(self) -> str:
        return os.environ.get(self.env_name, self.default)


ON_MALFORMED_LINE_ENV = EnvVariable(
    'PB2JSON_ON_MALFORMED_LINE', 'skip',
    description='What to do with lines that cannot be parsed: skip, collect-as-warning or fail. Default: skip'
)
INDENT_ENV = EnvVariable(
    'PB2JSON_INDENT', '2',
    description='Number of spaces used to indent the JSON output. Default: 2'
)
SORT_KEYS_ENV = EnvVariable(
    'PB2JSON_SORT_KEYS', 'false',
    description='Sort the keys of the output instead of keeping input order. Default: false'
)


def boolean_type(val: Optional[str]) -> bool:
    if val and val.lower() in ('1', 't', 'true'):
        return True
    elif val is None or val.lower() in ('', '0', 'f', 'false'):
        return False
    else:
        raise TypeError(f"Value {val!r} can't be converted to boolean")


class MalformedLinePolicy(Enum):
    skip = 'skip'
    collect_as_warning = 'collect-as-warning'
    fail = 'fail'


POLICY_NAMES: List[str] = [p.value for p in MalformedLinePolicy]


class ConverterOptions(BaseModel):
    on_malformed_line: MalformedLinePolicy = MalformedLinePolicy.skip
    indent: int = Field(default=2, ge=0)
    sort_keys: bool = False

    @field_validator('on_malformed_line', mode='before')
    @classmethod
    def normalize_policy(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower().replace('_', '-')
        return v

    @classmethod
    def from_env(cls, **overrides: Any) -> 'ConverterOptions':
        """
        Options as configured by the PB2JSON_* environment variables.  Values in `overrides` that aren't None win
        over the environment, which is how the cli layers its flags on top
        """
        values: Dict[str, Any] = {
            'on_malformed_line': ON_MALFORMED_LINE_ENV.get_value(),
            'indent': INDENT_ENV.get_value(),
            'sort_keys': boolean_type(SORT_KEYS_ENV.get_value()),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)


class MalformedLine(NamedTuple):
    line_number: int
    line: str
    reason: str

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.reason}: {self.line!r}"


class MalformedLineError(ValueError):
    def __init__(self, malformed_line: MalformedLine):
        super().__init__(str(malformed_line))
        self.malformed_line = malformed_line


class ConversionResult(NamedTuple):
    document: Document
    warnings: List[MalformedLine]


class LineKind(Enum):
    blank = 'blank'
    block_open = 'block_open'
    block_close = 'block_close'
    field = 'field'
    malformed = 'malformed'


class ParsedLine(NamedTuple):
    kind: LineKind
    key: str = ''
    value: str = ''
    reason: str = ''


class Idle(NamedTuple):
    pass


class InNestedBlock(NamedTuple):
    key: str
    fields: Dict[str, str]


ParseState = Union[Idle, InNestedBlock]

IDLE = Idle()


def unquote(value: str) -> str:
    """
    Strips one pair of double quotes, only when they're on both ends.  Nothing inside is unescaped, so `"a\\"b"`
    comes back as `a\\"b`
    """
    if len(value) >= 2 and value.startswith(QUOTE) and value.endswith(QUOTE):
        return value[1:-1]
    return value


def parse_line(line: str) -> ParsedLine:
    line = line.strip()
    if not line:
        return ParsedLine(LineKind.blank)

    if line.endswith(BLOCK_OPEN):
        key = line[:-len(BLOCK_OPEN)].strip()
        if not key:
            return ParsedLine(LineKind.malformed, reason='block has no name')
        return ParsedLine(LineKind.block_open, key=key)

    if line == BLOCK_CLOSE:
        return ParsedLine(LineKind.block_close)

    parts = [part.strip() for part in line.split(FIELD_SEPARATOR)]
    if len(parts) != 2:
        return ParsedLine(LineKind.malformed, reason=f"expected exactly one {FIELD_SEPARATOR!r}")

    key, value = parts
    if not key:
        return ParsedLine(LineKind.malformed, reason='field has no name')
    if not value:
        return ParsedLine(LineKind.malformed, reason='field has no value')

    return ParsedLine(LineKind.field, key=key, value=unquote(value))


def add_repeated(mapping: MutableMapping[str, Any], key: str, value: Any) -> None:
    """
    Adds `value` under `key` the way repeated fields work: the first value is stored as is, the second turns the
    entry into a list of both, and anything after that is appended to the list
    """
    if key not in mapping:
        mapping[key] = value
    elif isinstance(mapping[key], list):
        mapping[key].append(value)
    else:
        mapping[key] = [mapping[key], value]


class Converter:

    def __init__(self, options: Optional[ConverterOptions] = None):
        self.options = options if options is not None else ConverterOptions()

    def parse(self, text: str) -> ConversionResult:
        root: Document = {}
        warnings: List[MalformedLine] = []
        state: ParseState = IDLE

        for line_number, raw_line in enumerate(text.split(LINE_SEPARATOR), start=1):
            parsed = parse_line(raw_line)

            if parsed.kind == LineKind.blank:
                continue
            elif parsed.kind == LineKind.block_open:
                # only one level deep: a block opened inside another replaces it
                state = InNestedBlock(key=parsed.key, fields={})
            elif parsed.kind == LineKind.block_close:
                if isinstance(state, InNestedBlock):
                    root[state.key] = state.fields
                    state = IDLE
            elif parsed.kind == LineKind.field:
                if isinstance(state, InNestedBlock):
                    state.fields[parsed.key] = parsed.value
                else:
                    add_repeated(root, parsed.key, parsed.value)
            else:
                self._handle_malformed(
                    MalformedLine(line_number=line_number, line=raw_line.strip(), reason=parsed.reason),
                    warnings
                )

        # an InNestedBlock still open here was never closed and is dropped
        return ConversionResult(document=root, warnings=warnings)

    def _handle_malformed(self, malformed_line: MalformedLine, warnings: List[MalformedLine]) -> None:
        policy = self.options.on_malformed_line
        if policy == MalformedLinePolicy.fail:
            raise MalformedLineError(malformed_line)
        elif policy == MalformedLinePolicy.collect_as_warning:
            warnings.append(malformed_line)

    def dumps(self, document: Document) -> str:
        return json.dumps(
            document,
            indent=self.options.indent,
            sort_keys=self.options.sort_keys,
            ensure_ascii=False
        )

    def convert(self, text: str) -> str:
        return self.dumps(self.parse(text).document)

    def dumps_yaml(self, document: Document) -> str:
        return dump_yaml(document, sort_keys=self.options.sort_keys)

    def to_yaml(self, text: str) -> str:
        return self.dumps_yaml(self.parse(text).document)


def convert(text: str) -> str:
    """
    Converts protobuf-like text to pretty printed JSON.

    >>> print(convert('name: "John Doe"\\nage: 30'))
    {
      "name": "John Doe",
      "age": "30"
    }

    Every scalar comes out as a string, repeated top level fields become lists and `key { ... }` blocks become
    objects.  Lines that can't be parsed are skipped, so this never raises
    """
    return Converter().convert(text)
