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

from abc import ABC, abstractmethod
from typing import Optional, Union

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.util.types import Attributes


class ExemplarFilter(ABC):
    """``ExemplarFilter`` determines which measurements are eligible for
    becoming an ``Exemplar``.
    """

    @abstractmethod
    def should_sample(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> bool:
        """Returns whether or not a measurement should be offered to the
        exemplar reservoir.

        Args:
            value: The value of the measurement
            time_unix_nano: A timestamp that best represents when the
                measurement was taken
            attributes: The complete set of measurement attributes
            context: The context of the measurement, the current context
                when ``None``
        """


class AlwaysOnExemplarFilter(ExemplarFilter):
    """Makes all measurements eligible for being an exemplar."""

    def should_sample(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> bool:
        return True


class AlwaysOffExemplarFilter(ExemplarFilter):
    """Makes no measurements eligible for being an exemplar."""

    def should_sample(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> bool:
        return False


class TraceBasedExemplarFilter(ExemplarFilter):
    """Makes measurements recorded in the context of a sampled parent span
    eligible for being an exemplar.
    """

    def should_sample(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> bool:
        span_context = trace.get_current_span(context).get_span_context()
        if not span_context.is_valid:
            return False
        return span_context.trace_flags.sampled
