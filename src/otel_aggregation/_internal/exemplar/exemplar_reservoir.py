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
from bisect import bisect_right
from random import randrange
from threading import Lock
from typing import List, Optional, Sequence, Union

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.util.types import Attributes

from otel_aggregation._internal.exemplar.exemplar import Exemplar
from otel_aggregation._internal.exemplar.exemplar_filter import (
    ExemplarFilter,
)


class ExemplarReservoir(ABC):
    """An exemplar reservoir holds a bounded sample of the measurements
    recorded into one aggregator handle.

    Reservoirs are offered measurements from many recording threads and
    drained by the collecting thread, implementations must be safe for
    that use.
    """

    @abstractmethod
    def offer(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> None:
        """Offers a measurement to be sampled."""

    @abstractmethod
    def collect(self, point_attributes: Attributes) -> List[Exemplar]:
        """Returns the accumulated exemplars and resets the reservoir.

        Args:
            point_attributes: The attributes of the point the exemplars
                will be attached to. They are removed from the attributes
                of each exemplar.
        """


class NoSamplesExemplarReservoir(ExemplarReservoir):
    """A reservoir that never samples."""

    def offer(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> None:
        pass

    def collect(self, point_attributes: Attributes) -> List[Exemplar]:
        return []


class _ExemplarBucket:
    def __init__(self) -> None:
        self._value = 0
        self._attributes = None
        self._time_unix_nano = 0
        self._span_id = None
        self._trace_id = None
        self._offered = False

    def offer(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context],
    ) -> None:
        self._value = value
        self._time_unix_nano = time_unix_nano
        self._attributes = attributes

        span_context = trace.get_current_span(context).get_span_context()
        if span_context.is_valid:
            self._span_id = span_context.span_id
            self._trace_id = span_context.trace_id
        else:
            self._span_id = None
            self._trace_id = None

        self._offered = True

    def collect(self, point_attributes: Attributes) -> Optional[Exemplar]:
        if not self._offered:
            return None

        point_attributes = point_attributes or {}
        filtered_attributes = {
            key: value
            for key, value in (self._attributes or {}).items()
            if key not in point_attributes
        }

        exemplar = Exemplar(
            filtered_attributes,
            self._value,
            self._time_unix_nano,
            self._span_id,
            self._trace_id,
        )
        self.__init__()
        return exemplar


class FixedSizeExemplarReservoirABC(ExemplarReservoir):
    """Base class for reservoirs with a fixed number of buckets."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError(f"Reservoir size must be positive, got {size}")
        self._size = size
        self._lock = Lock()
        self._buckets = [_ExemplarBucket() for _ in range(size)]

    def offer(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> None:
        with self._lock:
            index = self._find_bucket_index(
                value, time_unix_nano, attributes, context
            )
            if index is not None:
                self._buckets[index].offer(
                    value, time_unix_nano, attributes, context
                )

    def collect(self, point_attributes: Attributes) -> List[Exemplar]:
        with self._lock:
            exemplars = []
            for bucket in self._buckets:
                exemplar = bucket.collect(point_attributes)
                if exemplar is not None:
                    exemplars.append(exemplar)
            self._reset()
        return exemplars

    @abstractmethod
    def _find_bucket_index(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context],
    ) -> Optional[int]:
        """Returns the bucket the measurement goes into, ``None`` to drop
        it. Called with the reservoir lock held.
        """

    def _reset(self) -> None:
        pass


class SimpleFixedSizeExemplarReservoir(FixedSizeExemplarReservoirABC):
    """Samples measurements uniformly with reservoir sampling.

    The first ``size`` measurements of a cycle are always kept, after that
    every new measurement replaces a random bucket with probability
    ``size / measurements_seen``.
    """

    def __init__(self, size: int = 1) -> None:
        super().__init__(size)
        self._measurements_seen = 0

    def _find_bucket_index(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context],
    ) -> Optional[int]:
        self._measurements_seen += 1

        if self._measurements_seen <= self._size:
            return self._measurements_seen - 1

        index = randrange(self._measurements_seen)
        return index if index < self._size else None

    def _reset(self) -> None:
        self._measurements_seen = 0


class AlignedHistogramBucketExemplarReservoir(FixedSizeExemplarReservoirABC):
    """Keeps the last measurement seen for every histogram bucket.

    Bucket selection follows the histogram aggregator, a value equal to a
    boundary belongs to the bucket above it.
    """

    def __init__(self, boundaries: Sequence[float]) -> None:
        super().__init__(len(boundaries) + 1)
        self._boundaries = tuple(boundaries)

    def _find_bucket_index(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context],
    ) -> Optional[int]:
        return bisect_right(self._boundaries, value)


class FilteredExemplarReservoir(ExemplarReservoir):
    """Offers to the wrapped reservoir only the measurements accepted by
    an ``ExemplarFilter``.
    """

    def __init__(
        self, exemplar_filter: ExemplarFilter, reservoir: ExemplarReservoir
    ) -> None:
        self._exemplar_filter = exemplar_filter
        self._reservoir = reservoir

    def offer(
        self,
        value: Union[int, float],
        time_unix_nano: int,
        attributes: Attributes,
        context: Optional[Context] = None,
    ) -> None:
        if self._exemplar_filter.should_sample(
            value, time_unix_nano, attributes, context
        ):
            self._reservoir.offer(value, time_unix_nano, attributes, context)

    def collect(self, point_attributes: Attributes) -> List[Exemplar]:
        return self._reservoir.collect(point_attributes)
