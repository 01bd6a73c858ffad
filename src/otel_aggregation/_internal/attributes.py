# Copyright The OpenTelemetry Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from typing import Dict, FrozenSet, Tuple

from opentelemetry.util.types import Attributes, AttributeValue

AttributesKey = FrozenSet[Tuple[str, AttributeValue]]

_EMPTY_KEY = frozenset()


def attributes_key(attributes: Attributes) -> AttributesKey:
    """Returns a hashable key that compares attribute sets by content."""
    if not attributes:
        return _EMPTY_KEY
    return frozenset(
        (key, tuple(value) if isinstance(value, list) else value)
        for key, value in attributes.items()
    )


def key_attributes(key: AttributesKey) -> Dict[str, AttributeValue]:
    return dict(key)
