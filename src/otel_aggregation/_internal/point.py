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

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from opentelemetry.util.types import Attributes

from otel_aggregation._internal.aggregation_temporality import (
    AggregationTemporality,
)
from otel_aggregation._internal.exemplar.exemplar import Exemplar


@dataclass(frozen=True)
class NumberDataPoint:
    """Single data point in a timeseries that describes the time-varying
    scalar value of a metric.
    """

    attributes: Attributes
    start_time_unix_nano: int
    time_unix_nano: int
    value: Union[int, float]
    exemplars: Sequence[Exemplar] = field(default_factory=list)


@dataclass(frozen=True)
class HistogramDataPoint:
    """Single data point in a timeseries that describes the time-varying
    scalar value of a metric.
    """

    attributes: Attributes
    start_time_unix_nano: int
    time_unix_nano: int
    count: int
    sum: Union[int, float]
    bucket_counts: Sequence[int]
    explicit_bounds: Sequence[float]
    min: Optional[float]
    max: Optional[float]
    exemplars: Sequence[Exemplar] = field(default_factory=list)


@dataclass(frozen=True)
class ValueAtQuantile:
    quantile: float
    value: Union[int, float]


@dataclass(frozen=True)
class SummaryDataPoint:
    """Count, sum and quantiles of the measurements of one collection
    cycle. Quantile 0.0 holds the minimum and quantile 1.0 the maximum.
    """

    attributes: Attributes
    start_time_unix_nano: int
    time_unix_nano: int
    count: int
    sum: Union[int, float]
    quantile_values: Sequence[ValueAtQuantile]
    exemplars: Sequence[Exemplar] = field(default_factory=list)


@dataclass(frozen=True)
class Sum:
    """Represents the type of a scalar metric that is calculated as a sum
    of all reported measurements over a time interval."""

    data_points: Sequence[NumberDataPoint]
    aggregation_temporality: AggregationTemporality
    is_monotonic: bool


@dataclass(frozen=True)
class Gauge:
    """Represents the type of a scalar metric that always exports the
    "current value" for every data point. It should be used for an
    "unknown" aggregation."""

    data_points: Sequence[NumberDataPoint]


@dataclass(frozen=True)
class Histogram:
    """Represents the type of a metric that is calculated by aggregating
    as a histogram of all reported measurements over a time interval."""

    data_points: Sequence[HistogramDataPoint]
    aggregation_temporality: AggregationTemporality


@dataclass(frozen=True)
class Summary:
    data_points: Sequence[SummaryDataPoint]


DataT = Union[Sum, Gauge, Histogram, Summary]
DataPointT = Union[NumberDataPoint, HistogramDataPoint, SummaryDataPoint]


@dataclass(frozen=True)
class Metric:
    """Represents a metric point in the OpenTelemetry data model to be
    exported.

    ``resource`` and ``scope`` are carried through untouched, their
    meaning belongs to the exporter.
    """

    resource: Any
    scope: Any
    name: str
    description: Optional[str]
    unit: Optional[str]
    data: DataT
