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

from typing import Mapping, Tuple, Union

from otel_aggregation._internal.accumulation import LastValueAccumulation
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
from otel_aggregation._internal.point import Gauge, Metric, NumberDataPoint


class _LastValueHandle(AggregatorHandle[LastValueAccumulation]):
    def __init__(self, exemplar_reservoir: ExemplarReservoir, clock: Clock):
        super().__init__(exemplar_reservoir, clock)
        self._value = None
        self._time_unix_nano = 0

    def _record(self, value: Union[int, float]) -> None:
        # The clock is read under the lock so the retained write is also the
        # one with the latest timestamp.
        self._value = value
        self._time_unix_nano = self._clock()

    def _accumulate_then_reset(
        self, exemplars: Tuple[Exemplar, ...]
    ) -> LastValueAccumulation:
        accumulation = LastValueAccumulation(
            self._value, self._time_unix_nano, exemplars
        )
        self._value = None
        self._time_unix_nano = 0
        return accumulation


class LastValueAggregator(Aggregator[LastValueAccumulation]):
    """Keeps the most recently recorded value and when it was recorded."""

    kind = AggregatorKind.LAST_VALUE

    def create_handle(self) -> _LastValueHandle:
        return _LastValueHandle(self._reservoir_factory(), self._clock)

    def merge(
        self, previous: LastValueAccumulation, current: LastValueAccumulation
    ) -> LastValueAccumulation:
        if previous.time_unix_nano != current.time_unix_nano:
            return max(
                previous, current, key=lambda acc: acc.time_unix_nano
            )
        # Equal timestamps, the larger value wins whatever the order.
        if previous.value > current.value:
            return previous
        return current

    def diff(
        self, previous: LastValueAccumulation, current: LastValueAccumulation
    ) -> LastValueAccumulation:
        return current

    def to_metric_data(
        self,
        resource,
        scope,
        descriptor: MetricDescriptor,
        accumulations: Mapping[AttributesKey, LastValueAccumulation],
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
            data=Gauge(
                data_points=[
                    NumberDataPoint(
                        attributes=key_attributes(key),
                        start_time_unix_nano=point_start_time_unix_nano,
                        time_unix_nano=time_unix_nano,
                        value=accumulation.value,
                        exemplars=list(accumulation.exemplars),
                    )
                    for key, accumulation in accumulations.items()
                ]
            ),
        )
