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

from dataclasses import dataclass
from enum import Enum


class InstrumentType(Enum):
    COUNTER = "counter"
    UP_DOWN_COUNTER = "up_down_counter"
    HISTOGRAM = "histogram"
    OBSERVABLE_COUNTER = "observable_counter"
    OBSERVABLE_UP_DOWN_COUNTER = "observable_up_down_counter"
    OBSERVABLE_GAUGE = "observable_gauge"


class InstrumentValueType(Enum):
    LONG = "long"
    DOUBLE = "double"


@dataclass(frozen=True)
class InstrumentDescriptor:
    """Identity of an instrument as handed over by the instrument API."""

    name: str
    description: str = ""
    unit: str = ""
    type: InstrumentType = InstrumentType.COUNTER
    value_type: InstrumentValueType = InstrumentValueType.DOUBLE

    @property
    def is_monotonic(self) -> bool:
        return self.type in (
            InstrumentType.COUNTER,
            InstrumentType.OBSERVABLE_COUNTER,
        )

    @property
    def is_asynchronous(self) -> bool:
        return self.type in (
            InstrumentType.OBSERVABLE_COUNTER,
            InstrumentType.OBSERVABLE_UP_DOWN_COUNTER,
            InstrumentType.OBSERVABLE_GAUGE,
        )


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, description and unit of an exported metric."""

    name: str
    description: str = ""
    unit: str = ""

    @classmethod
    def from_instrument(
        cls, instrument: InstrumentDescriptor
    ) -> "MetricDescriptor":
        return cls(instrument.name, instrument.description, instrument.unit)
