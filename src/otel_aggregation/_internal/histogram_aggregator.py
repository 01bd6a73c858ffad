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

from bisect import bisect_right
from math import inf, isfinite
from time import time_ns
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from otel_aggregation._internal.accumulation import HistogramAccumulation
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
from otel_aggregation._internal.point import (
    Histogram,
    HistogramDataPoint,
    Metric,
)

_DEFAULT_BOUNDARIES = (
    0.0,
    5.0,
    10.0,
    25.0,
    50.0,
    75.0,
    100.0,
    250.0,
    500.0,
    750.0,
    1000.0,
    2500.0,
    5000.0,
    7500.0,
    10000.0,
)


def _validate_boundaries(boundaries: Sequence[float]) -> Tuple[float, ...]:
    boundaries = tuple(boundaries)
    for boundary in boundaries:
        if not isfinite(boundary):
            raise ValueError(
                f"Histogram boundaries must be finite, got {boundary}"
            )
    for lower, upper in zip(boundaries, boundaries[1:]):
        if lower >= upper:
            raise ValueError(
                "Histogram boundaries must be strictly increasing, got "
                f"{boundaries}"
            )
    return boundaries


class _HistogramHandle(AggregatorHandle[HistogramAccumulation]):
    def __init__(
        self,
        boundaries: Tuple[float, ...],
        record_min_max: bool,
        zero: Union[int, float],
        exemplar_reservoir: ExemplarReservoir,
        clock: Clock,
    ):
        super().__init__(exemplar_reservoir, clock)
        self._boundaries = boundaries
        self._record_min_max = record_min_max
        self._zero = zero
        self._reset()

    def _get_empty_bucket_counts(self) -> List[int]:
        return [0] * (len(self._boundaries) + 1)

    def _reset(self) -> None:
        self._bucket_counts = self._get_empty_bucket_counts()
        self._sum = self._zero
        self._min = inf
        self._max = -inf

    def _record(self, value: Union[int, float]) -> None:
        if self._record_min_max:
            self._min = min(self._min, value)
            self._max = max(self._max, value)

        self._sum += value

        self._bucket_counts[bisect_right(self._boundaries, value)] += 1

    def _accumulate_then_reset(
        self, exemplars: Tuple[Exemplar, ...]
    ) -> HistogramAccumulation:
        if self._record_min_max:
            min_, max_ = self._min, self._max
        else:
            min_ = max_ = None

        accumulation = HistogramAccumulation(
            tuple(self._bucket_counts), self._sum, min_, max_, exemplars
        )
        self._reset()
        return accumulation


def _combine(
    previous: Optional[Union[int, float]],
    current: Optional[Union[int, float]],
    combine,
) -> Optional[Union[int, float]]:
    if previous is None:
        return current
    if current is None:
        return previous
    return combine(previous, current)


class HistogramAggregator(Aggregator[HistogramAccumulation]):
    """Explicit bucket histogram.

    Bucket ``i`` counts values ``v`` with ``boundaries[i - 1] <= v <
    boundaries[i]``, the first bucket is unbounded below and the last one
    is unbounded above.

    Args:
        boundaries: Strictly increasing, finite bucket boundaries.
        record_min_max: Whether to record min and max.
    """

    kind = AggregatorKind.HISTOGRAM

    def __init__(
        self,
        boundaries: Sequence[float] = _DEFAULT_BOUNDARIES,
        record_min_max: bool = True,
        value_type: InstrumentValueType = InstrumentValueType.DOUBLE,
        reservoir_factory: ReservoirFactory = NoSamplesExemplarReservoir,
        clock: Clock = time_ns,
    ):
        super().__init__(value_type, reservoir_factory, clock)
        self._boundaries = _validate_boundaries(boundaries)
        self._record_min_max = record_min_max

    @property
    def boundaries(self) -> Tuple[float, ...]:
        return self._boundaries

    def create_handle(self) -> _HistogramHandle:
        return _HistogramHandle(
            self._boundaries,
            self._record_min_max,
            self._zero(),
            self._reservoir_factory(),
            self._clock,
        )

    def merge(
        self, previous: HistogramAccumulation, current: HistogramAccumulation
    ) -> HistogramAccumulation:
        return HistogramAccumulation(
            tuple(
                previous_count + current_count
                for previous_count, current_count in zip(
                    previous.counts, current.counts
                )
            ),
            previous.sum + current.sum,
            _combine(previous.min, current.min, min),
            _combine(previous.max, current.max, max),
            current.exemplars,
        )

    def diff(
        self, previous: HistogramAccumulation, current: HistogramAccumulation
    ) -> HistogramAccumulation:
        # Only counts and sum can be subtracted, min and max are the
        # current ones.
        return HistogramAccumulation(
            tuple(
                current_count - previous_count
                for previous_count, current_count in zip(
                    previous.counts, current.counts
                )
            ),
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
        accumulations: Mapping[AttributesKey, HistogramAccumulation],
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
            data=Histogram(
                data_points=[
                    HistogramDataPoint(
                        attributes=key_attributes(key),
                        start_time_unix_nano=point_start_time_unix_nano,
                        time_unix_nano=time_unix_nano,
                        count=accumulation.count,
                        sum=accumulation.sum,
                        bucket_counts=accumulation.counts,
                        explicit_bounds=self._boundaries,
                        min=accumulation.min,
                        max=accumulation.max,
                        exemplars=list(accumulation.exemplars),
                    )
                    for key, accumulation in accumulations.items()
                ],
                aggregation_temporality=temporality,
            ),
        )
