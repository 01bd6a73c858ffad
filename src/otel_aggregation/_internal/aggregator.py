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
from enum import Enum
from threading import Lock
from time import time_ns
from typing import Callable, Generic, Mapping, Optional, Tuple, TypeVar, Union

from opentelemetry.context import Context
from opentelemetry.util.types import Attributes

from otel_aggregation._internal.aggregation_temporality import (
    AggregationTemporality,
)
from otel_aggregation._internal.attributes import AttributesKey
from otel_aggregation._internal.descriptor import (
    InstrumentValueType,
    MetricDescriptor,
)
from otel_aggregation._internal.exemplar.exemplar import Exemplar
from otel_aggregation._internal.exemplar.exemplar_reservoir import (
    ExemplarReservoir,
    NoSamplesExemplarReservoir,
)
from otel_aggregation._internal.point import Metric

_AccumulationT = TypeVar("_AccumulationT")

ReservoirFactory = Callable[[], ExemplarReservoir]
Clock = Callable[[], int]


class AggregatorKind(Enum):
    SUM = "sum"
    MIN_MAX_SUM_COUNT = "min_max_sum_count"
    HISTOGRAM = "histogram"
    LAST_VALUE = "last_value"


class AggregatorHandle(ABC, Generic[_AccumulationT]):
    """
    Working state of one attribute set of one instrument for one reader.

    Any number of threads may record into a handle while a single
    collecting thread calls ``accumulate_then_reset``. Folding and
    snapshotting share one lock so a recording lands either in the cycle
    being collected or in the next one, never in both and never in none.
    Subclasses implement ``_record`` and ``_accumulate_then_reset``, both
    are called with ``self._lock`` held.
    """

    def __init__(self, exemplar_reservoir: ExemplarReservoir, clock: Clock):
        self._lock = Lock()
        self._has_recordings = False
        self._evicted = False
        self._exemplar_reservoir = exemplar_reservoir
        self._clock = clock

    def record_long(
        self,
        value: int,
        attributes: Attributes = None,
        context: Optional[Context] = None,
    ) -> bool:
        """Returns ``False`` when the handle was evicted and the measurement
        was not recorded."""
        return self._record_measurement(value, attributes, context)

    def record_double(
        self,
        value: float,
        attributes: Attributes = None,
        context: Optional[Context] = None,
    ) -> bool:
        """Returns ``False`` when the handle was evicted and the measurement
        was not recorded."""
        return self._record_measurement(value, attributes, context)

    def _record_measurement(
        self,
        value: Union[int, float],
        attributes: Attributes,
        context: Optional[Context],
    ) -> bool:
        if self._evicted:
            return False
        self._exemplar_reservoir.offer(
            value, self._clock(), attributes, context
        )
        with self._lock:
            if self._evicted:
                return False
            self._record(value)
            self._has_recordings = True
        return True

    def accumulate_then_reset(
        self, attributes: Attributes
    ) -> Optional[_AccumulationT]:
        """
        Atomically returns the accumulation of everything recorded since the
        previous call and resets the handle to its identity state.

        Returns ``None`` when nothing was recorded in between.
        """
        with self._lock:
            return self._snapshot(attributes)

    def evict(self, attributes: Attributes) -> Optional[_AccumulationT]:
        """
        Like ``accumulate_then_reset`` but also refuses every later
        measurement, ``record_long`` and ``record_double`` then return
        ``False`` so callers can record into a new handle instead.
        """
        with self._lock:
            self._evicted = True
            return self._snapshot(attributes)

    def _snapshot(self, attributes: Attributes) -> Optional[_AccumulationT]:
        if not self._has_recordings:
            return None
        self._has_recordings = False
        exemplars = tuple(self._exemplar_reservoir.collect(attributes))
        return self._accumulate_then_reset(exemplars)

    @abstractmethod
    def _record(self, value: Union[int, float]) -> None:
        pass

    @abstractmethod
    def _accumulate_then_reset(
        self, exemplars: Tuple[Exemplar, ...]
    ) -> _AccumulationT:
        pass


class Aggregator(ABC, Generic[_AccumulationT]):
    """
    Stateless strategy for one aggregator kind.

    An aggregator creates handles, combines and subtracts the accumulations
    they produce and turns a collection cycle into a ``Metric``.
    """

    kind: AggregatorKind

    def __init__(
        self,
        value_type: InstrumentValueType = InstrumentValueType.DOUBLE,
        reservoir_factory: ReservoirFactory = NoSamplesExemplarReservoir,
        clock: Clock = time_ns,
    ):
        self._value_type = value_type
        self._reservoir_factory = reservoir_factory
        self._clock = clock

    @property
    def value_type(self) -> InstrumentValueType:
        return self._value_type

    def _zero(self) -> Union[int, float]:
        if self._value_type is InstrumentValueType.LONG:
            return 0
        return 0.0

    @abstractmethod
    def create_handle(self) -> AggregatorHandle[_AccumulationT]:
        """Returns a new handle at identity state with its own exemplar
        reservoir."""

    @abstractmethod
    def merge(
        self, previous: _AccumulationT, current: _AccumulationT
    ) -> _AccumulationT:
        """Combines two accumulations as if all their measurements had been
        recorded into a single handle. Exemplars of ``current`` are kept.
        """

    @abstractmethod
    def diff(
        self, previous: _AccumulationT, current: _AccumulationT
    ) -> _AccumulationT:
        """Returns the delta between two cumulative accumulations."""

    @abstractmethod
    def to_metric_data(
        self,
        resource,
        scope,
        descriptor: MetricDescriptor,
        accumulations: Mapping[AttributesKey, _AccumulationT],
        temporality: AggregationTemporality,
        start_time_unix_nano: int,
        last_collection_unix_nano: int,
        time_unix_nano: int,
    ) -> Metric:
        """Builds one point per attribute set, without side effects.

        Delta points start at ``last_collection_unix_nano``, cumulative
        points at ``start_time_unix_nano``.
        """

    def accumulate(
        self, value: Union[int, float], attributes: Attributes = None
    ) -> _AccumulationT:
        """Returns the accumulation of a single measurement."""
        handle = self.create_handle()
        if self._value_type is InstrumentValueType.LONG:
            handle.record_long(value, attributes)
        else:
            handle.record_double(value, attributes)
        return handle.accumulate_then_reset(attributes)

    @staticmethod
    def _point_start_time_unix_nano(
        temporality: AggregationTemporality,
        start_time_unix_nano: int,
        last_collection_unix_nano: int,
    ) -> int:
        if temporality is AggregationTemporality.DELTA:
            return last_collection_unix_nano
        return start_time_unix_nano
