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

from time import time_ns
from typing import Mapping, Tuple, Union

from otel_aggregation._internal.accumulation import SumAccumulation
from otel_aggregation._internal.aggregation_temporality import (
    AggregationTemporality,
)
from otel_aggregation._internal.aggregator import (
    Aggregator,
    AggregatorHandle,
    AggregatorKind,
    Clock,
    ReservoirFactory,
)
from otel_aggregation._internal.attributes import (
    AttributesKey,
    key_attributes,
)
from otel_aggregation._internal.descriptor import (
    InstrumentValueType,
    MetricDescriptor,
)
from otel_aggregation._internal.exemplar.exemplar import Exemplar
from otel_aggregation._internal.exemplar.exemplar_reservoir import (
    ExemplarReservoir,
    NoSamplesExemplarReservoir,
)
from otel_aggregation._internal.point import Metric, NumberDataPoint, Sum


class _SumHandle(AggregatorHandle[SumAccumulation]):
    def __init__(
        self,
        zero: Union[int, float],
        exemplar_reservoir: ExemplarReservoir,
        clock: Clock,
    ):
        super().__init__(exemplar_reservoir, clock)
        self._zero = zero
        self._value = zero

    def _record(self, value: Union[int, float]) -> None:
        self._value = self._value + value

    def _accumulate_then_reset(
        self, exemplars: Tuple[Exemplar, ...]
    ) -> SumAccumulation:
        accumulation = SumAccumulation(self._value, exemplars)
        self._value = self._zero
        return accumulation


class SumAggregator(Aggregator[SumAccumulation]):
    """Arithmetic sum of the recorded values.

    Args:
        is_monotonic: Whether the exported sum is flagged as monotonic.
            Negative values are expected to have been rejected by the
            instrument already, this aggregator does not check.
    """

    kind = AggregatorKind.SUM

    def __init__(
        self,
        is_monotonic: bool,
        value_type: InstrumentValueType = InstrumentValueType.DOUBLE,
        reservoir_factory: ReservoirFactory = NoSamplesExemplarReservoir,
        clock: Clock = time_ns,
    ):
        super().__init__(value_type, reservoir_factory, clock)
        self._is_monotonic = is_monotonic

    @property
    def is_monotonic(self) -> bool:
        return self._is_monotonic

    def create_handle(self) -> _SumHandle:
        return _SumHandle(self._zero(), self._reservoir_factory(), self._clock)

    def merge(
        self, previous: SumAccumulation, current: SumAccumulation
    ) -> SumAccumulation:
        return SumAccumulation(
            previous.value + current.value, current.exemplars
        )

    def diff(
        self, previous: SumAccumulation, current: SumAccumulation
    ) -> SumAccumulation:
        return SumAccumulation(
            current.value - previous.value, current.exemplars
        )

    def to_metric_data(
        self,
        resource,
        scope,
        descriptor: MetricDescriptor,
        accumulations: Mapping[AttributesKey, SumAccumulation],
        temporality: AggregationTemporality,
        start_time_unix_nano: int,
        last_collection_unix_nano: int,
        time_unix_nano: int,
    ) -> Metric:
        point_start_time_unix_nano = self._point_start_time_unix_nano(
            temporality, start_time_unix_nano, last_collection_unix_nano
        )
        return Metric(
            resource=resource,
            scope=scope,
            name=descriptor.name,
            description=descriptor.description,
            unit=descriptor.unit,
            data=Sum(
                data_points=[
                    NumberDataPoint(
                        attributes=key_attributes(key),
                        start_time_unix_nano=point_start_time_unix_nano,
                        time_unix_nano=time_unix_nano,
                        value=accumulation.value,
                        exemplars=list(accumulation.exemplars),
                    )
                    for key, accumulation in accumulations.items()
                ],
                aggregation_temporality=temporality,
                is_monotonic=self._is_monotonic,
            ),
        )
