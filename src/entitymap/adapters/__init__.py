"""
Result adapters package.

This package provides the following components:

- column_info: Column descriptors built from cursor descriptions
- structure: Row structure access by name or position (no type conversion)
- type_mapping: Driver type code resolution (no conversion)

None of these perform conversions; values are converted into entity property
types by the converter registry during row mapping.
"""

from entitymap.adapters.column_info import *
from entitymap.adapters.structure import *
from entitymap.adapters.type_mapping import *
