from dataclasses import dataclass, field

from entitymap.markers import CopyBehavior

from libb import ConfigOptions

__all__ = [
    'MappingOptions',
    'DEFAULT_DATE_PATTERNS',
]

# Order is important. The first pattern is both the most common input pattern
# and the output pattern; the rest are tried in order on input only.
DEFAULT_DATE_PATTERNS = (
    '%m/%d/%Y',
    '%m-%d-%Y',
    '%m %d %Y',
    '%b %d %Y',
    '%d %b %Y',
    '%d-%b-%Y',
    '%d/%b/%Y',
    '%d%b%Y',
    '%Y/%m/%d',
    '%Y-%m-%d',
    '%Y %m %d',
    '%Y%m%d',
)


@dataclass
class MappingOptions(ConfigOptions):
    """Options

    - date_patterns: strptime patterns tried in order when parsing text into
      dates; the first one is also the output format
    - default_id_property: property assumed to be the identifier when no
      property carries an `Id` marker (default: 'id')
    - default_copy_behavior: policy for properties without a CopyBehavior
      marker (default: MOST_RECENT_NON_NULL)
    - null_strings: strings bound as NULL by outbound parameter conversion
      (default: none, besides the empty string)
    - strict_enum_text: whether text that names no enum identifier is an
      error instead of None
    """
    date_patterns: tuple[str, ...] = DEFAULT_DATE_PATTERNS
    default_id_property: str = 'id'
    default_copy_behavior: CopyBehavior = CopyBehavior.MOST_RECENT_NON_NULL
    null_strings: frozenset[str] = field(default_factory=frozenset)
    strict_enum_text: bool = False

    def __post_init__(self):
        if isinstance(self.date_patterns, str):
            self.date_patterns = (self.date_patterns,)
        self.date_patterns = tuple(self.date_patterns)
        if not self.date_patterns:
            raise ValueError('date_patterns must name at least one pattern')
        if not self.default_id_property or not self.default_id_property.isidentifier():
            raise ValueError(f'default_id_property must be an identifier: {self.default_id_property!r}')
        if not isinstance(self.default_copy_behavior, CopyBehavior):
            self.default_copy_behavior = CopyBehavior[str(self.default_copy_behavior).upper()]
        self.null_strings = frozenset(s.lower() for s in self.null_strings)
