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

from math import inf
from typing import Mapping, Tuple, Union

from otel_aggregation._internal.accumulation import (
    MinMaxSumCountAccumulation,
)
from otel_aggregation._internal.aggregation_temporality import (
    AggregationTemporality,
)
from otel_aggregation._internal.aggregator import (
    Aggregator,
    AggregatorHandle,
    AggregatorKind,
    Clock,
)
from otel_aggregation._internal.attributes import (
    AttributesKey,
    key_attributes,
)
from otel_aggregation._internal.descriptor import MetricDescriptor
from otel_aggregation._internal.exemplar.exemplar import Exemplar
from otel_aggregation._internal.exemplar.exemplar_reservoir import (
    ExemplarReservoir,
)
from otel_aggregation._internal.point import (
    Metric,
    Summary,
    SummaryDataPoint,
    ValueAtQuantile,
)


class _MinMaxSumCountHandle(AggregatorHandle[MinMaxSumCountAccumulation]):
    def __init__(
        self,
        zero: Union[int, float],
        exemplar_reservoir: ExemplarReservoir,
        clock: Clock,
    ):
        super().__init__(exemplar_reservoir, clock)
        self._zero = zero
        self._reset()

    def _reset(self) -> None:
        self._count = 0
        self._sum = self._zero
        self._min = inf
        self._max = -inf

    def _record(self, value: Union[int, float]) -> None:
        self._count += 1
        self._sum += value
        self._min = min(self._min, value)
        self._max = max(self._max, value)

    def _accumulate_then_reset(
        self, exemplars: Tuple[Exemplar, ...]
    ) -> MinMaxSumCountAccumulation:
        accumulation = MinMaxSumCountAccumulation(
            self._count, self._sum, self._min, self._max, exemplars
        )
        self._reset()
        return accumulation


class MinMaxSumCountAggregator(Aggregator[MinMaxSumCountAccumulation]):
    """Summary style aggregator keeping count, sum, min and max."""

    kind = AggregatorKind.MIN_MAX_SUM_COUNT

    def create_handle(self) -> _MinMaxSumCountHandle:
        return _MinMaxSumCountHandle(
            self._zero(), self._reservoir_factory(), self._clock
        )

    def merge(
        self,
        previous: MinMaxSumCountAccumulation,
        current: MinMaxSumCountAccumulation,
    ) -> MinMaxSumCountAccumulation:
        return MinMaxSumCountAccumulation(
            previous.count + current.count,
            previous.sum + current.sum,
            min(previous.min, current.min),
            max(previous.max, current.max),
            current.exemplars,
        )

    def diff(
        self,
        previous: MinMaxSumCountAccumulation,
        current: MinMaxSumCountAccumulation,
    ) -> MinMaxSumCountAccumulation:
        # min and max cannot be subtracted, the current ones are reported.
        return MinMaxSumCountAccumulation(
            current.count - previous.count,
            current.sum - previous.sum,
            current.min,
            current.max,
            current.exemplars,
        )

    def to_metric_data(
        self,
        resource,
        scope,
        descriptor: MetricDescriptor,
        accumulations: Mapping[AttributesKey, MinMaxSumCountAccumulation],
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
            data=Summary(
                data_points=[
                    SummaryDataPoint(
                        attributes=key_attributes(key),
                        start_time_unix_nano=point_start_time_unix_nano,
                        time_unix_nano=time_unix_nano,
                        count=accumulation.count,
                        sum=accumulation.sum,
                        quantile_values=[
                            ValueAtQuantile(0.0, accumulation.min),
                            ValueAtQuantile(1.0, accumulation.max),
                        ],
                        exemplars=list(accumulation.exemplars),
                    )
                    for key, accumulation in accumulations.items()
                ]
            ),
        )
