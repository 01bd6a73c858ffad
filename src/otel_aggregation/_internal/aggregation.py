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
from functools import partial
from time import time_ns
from typing import Optional, Sequence

from otel_aggregation._internal.aggregator import Aggregator, Clock
from otel_aggregation._internal.descriptor import (
    InstrumentDescriptor,
    InstrumentType,
)
from otel_aggregation._internal.exemplar.exemplar_filter import (
    ExemplarFilter,
    TraceBasedExemplarFilter,
)
from otel_aggregation._internal.exemplar.exemplar_reservoir import (
    AlignedHistogramBucketExemplarReservoir,
    ExemplarReservoir,
    FilteredExemplarReservoir,
    SimpleFixedSizeExemplarReservoir,
)
from otel_aggregation._internal.histogram_aggregator import (
    _DEFAULT_BOUNDARIES,
    HistogramAggregator,
)
from otel_aggregation._internal.last_value_aggregator import (
    LastValueAggregator,
)
from otel_aggregation._internal.min_max_sum_count_aggregator import (
    MinMaxSumCountAggregator,
)
from otel_aggregation._internal.sum_aggregator import SumAggregator


def _filtered_reservoir(
    exemplar_filter: ExemplarFilter, reservoir_factory
) -> ExemplarReservoir:
    return FilteredExemplarReservoir(exemplar_filter, reservoir_factory())


def _reservoir_factory(exemplar_filter: Optional[ExemplarFilter], factory):
    if exemplar_filter is None:
        exemplar_filter = TraceBasedExemplarFilter()
    return partial(_filtered_reservoir, exemplar_filter, factory)


class Aggregation(ABC):
    """
    Base class for all aggregation types.
    """

    @abstractmethod
    def _create_aggregator(
        self,
        instrument: InstrumentDescriptor,
        exemplar_filter: Optional[ExemplarFilter] = None,
        clock: Clock = time_ns,
    ) -> Aggregator:
        """Creates an aggregator"""


class DefaultAggregation(Aggregation):
    """
    The default aggregation to be used for an instrument.

    This aggregation will create an actual aggregator depending on the
    instrument type, as specified next:

    ============================================= ===========================
    Instrument                                    Aggregation
    ============================================= ===========================
    `InstrumentType.COUNTER`                      `SumAggregation`
    `InstrumentType.UP_DOWN_COUNTER`              `SumAggregation`
    `InstrumentType.OBSERVABLE_COUNTER`           `SumAggregation`
    `InstrumentType.OBSERVABLE_UP_DOWN_COUNTER`   `SumAggregation`
    `InstrumentType.HISTOGRAM`                    `ExplicitBucketHistogramAggregation`
    `InstrumentType.OBSERVABLE_GAUGE`             `LastValueAggregation`
    ============================================= ===========================
    """

    def _create_aggregator(
        self,
        instrument: InstrumentDescriptor,
        exemplar_filter: Optional[ExemplarFilter] = None,
        clock: Clock = time_ns,
    ) -> Aggregator:

        if instrument.type in (
            InstrumentType.COUNTER,
            InstrumentType.UP_DOWN_COUNTER,
            InstrumentType.OBSERVABLE_COUNTER,
            InstrumentType.OBSERVABLE_UP_DOWN_COUNTER,
        ):
            return SumAggregation()._create_aggregator(
                instrument, exemplar_filter, clock
            )

        if instrument.type is InstrumentType.HISTOGRAM:
            return ExplicitBucketHistogramAggregation()._create_aggregator(
                instrument, exemplar_filter, clock
            )

        if instrument.type is InstrumentType.OBSERVABLE_GAUGE:
            return LastValueAggregation()._create_aggregator(
                instrument, exemplar_filter, clock
            )

        raise Exception(f"Invalid instrument type {instrument.type} found")


class ExplicitBucketHistogramAggregation(Aggregation):
    """This aggregation informs the SDK to collect:

    - Count of Measurement values falling within explicit bucket boundaries.
    - Arithmetic sum of Measurement values in population. This SHOULD NOT be collected when used with instruments that record negative measurements, e.g. UpDownCounter or ObservableGauge.
    - Min (optional) Measurement value in population.
    - Max (optional) Measurement value in population.


    Args:
        boundaries: Array of increasing values representing explicit bucket boundary values.
        record_min_max: Whether to record min and max.
    """

    def __init__(
        self,
        boundaries: Sequence[float] = _DEFAULT_BOUNDARIES,
        record_min_max: bool = True,
    ) -> None:
        self._boundaries = tuple(boundaries)
        self._record_min_max = record_min_max

    def _create_aggregator(
        self,
        instrument: InstrumentDescriptor,
        exemplar_filter: Optional[ExemplarFilter] = None,
        clock: Clock = time_ns,
    ) -> Aggregator:
        return HistogramAggregator(
            self._boundaries,
            self._record_min_max,
            instrument.value_type,
            _reservoir_factory(
                exemplar_filter,
                partial(
                    AlignedHistogramBucketExemplarReservoir, self._boundaries
                ),
            ),
            clock,
        )


class SumAggregation(Aggregation):
    """This aggregation informs the SDK to collect:

    - The arithmetic sum of Measurement values.
    """

    def _create_aggregator(
        self,
        instrument: InstrumentDescriptor,
        exemplar_filter: Optional[ExemplarFilter] = None,
        clock: Clock = time_ns,
    ) -> Aggregator:
        return SumAggregator(
            instrument.is_monotonic,
            instrument.value_type,
            _reservoir_factory(
                exemplar_filter, SimpleFixedSizeExemplarReservoir
            ),
            clock,
        )


class LastValueAggregation(Aggregation):
    """
    This aggregation informs the SDK to collect:

    - The last Measurement.
    - The timestamp of the last Measurement.
    """

    def _create_aggregator(
        self,
        instrument: InstrumentDescriptor,
        exemplar_filter: Optional[ExemplarFilter] = None,
        clock: Clock = time_ns,
    ) -> Aggregator:
        return LastValueAggregator(
            instrument.value_type,
            _reservoir_factory(
                exemplar_filter, SimpleFixedSizeExemplarReservoir
            ),
            clock,
        )


class MinMaxSumCountAggregation(Aggregation):
    """This aggregation informs the SDK to collect:

    - The count of Measurements.
    - The arithmetic sum of Measurement values.
    - The minimum and maximum Measurement values.
    """

    def _create_aggregator(
        self,
        instrument: InstrumentDescriptor,
        exemplar_filter: Optional[ExemplarFilter] = None,
        clock: Clock = time_ns,
    ) -> Aggregator:
        return MinMaxSumCountAggregator(
            instrument.value_type,
            _reservoir_factory(
                exemplar_filter, SimpleFixedSizeExemplarReservoir
            ),
            clock,
        )
