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
from typing import Optional, Union

from opentelemetry.util.types import Attributes


@dataclass(frozen=True)
class Exemplar:
    """A representation of an exemplar, which is a sample input measurement.

    Exemplars also hold information about the environment when the
    measurement was recorded, for example the span and trace ID of the
    active span when the exemplar was recorded.

    Attributes:
        filtered_attributes: The attributes of the measurement that are not
            already part of the attribute set of the point the exemplar is
            attached to.
        value: The value of the measurement that was recorded.
        time_unix_nano: The time the measurement was recorded.
        span_id: Span ID of the span that was active when the measurement
            was recorded, ``None`` if there was no valid span.
        trace_id: Trace ID of that span, ``None`` if there was no valid
            span.
    """

    filtered_attributes: Attributes
    value: Union[int, float]
    time_unix_nano: int
    span_id: Optional[int] = None
    trace_id: Optional[int] = None
