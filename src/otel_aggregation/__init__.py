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

"""
Metrics aggregation core.

Turns raw measurements recorded from any number of threads into periodic,
attribute keyed snapshots for export, under cumulative or delta
temporality, with a bounded number of attribute sets per instrument and
optional exemplars.
"""

from otel_aggregation._internal.accumulation import (
    Accumulation,
    HistogramAccumulation,
    LastValueAccumulation,
    MinMaxSumCountAccumulation,
    SumAccumulation,
)
from otel_aggregation._internal.aggregation import (
    Aggregation,
    DefaultAggregation,
    ExplicitBucketHistogramAggregation,
    LastValueAggregation,
    MinMaxSumCountAggregation,
    SumAggregation,
)
from otel_aggregation._internal.aggregation_temporality import (
    AggregationTemporality,
)
from otel_aggregation._internal.aggregator import (
    Aggregator,
    AggregatorHandle,
    AggregatorKind,
)
from otel_aggregation._internal.descriptor import (
    InstrumentDescriptor,
    InstrumentType,
    InstrumentValueType,
    MetricDescriptor,
)
from otel_aggregation._internal.histogram_aggregator import (
    HistogramAggregator,
)
from otel_aggregation._internal.last_value_aggregator import (
    LastValueAggregator,
)
from otel_aggregation._internal.min_max_sum_count_aggregator import (
    MinMaxSumCountAggregator,
)
from otel_aggregation._internal.point import (
    Gauge,
    Histogram,
    HistogramDataPoint,
    Metric,
    NumberDataPoint,
    Sum,
    Summary,
    SummaryDataPoint,
    ValueAtQuantile,
)
from otel_aggregation._internal.storage import (
    OVERFLOW_ATTRIBUTES,
    AsynchronousMetricStorage,
    InstrumentStorage,
    SynchronousMetricStorage,
)
from otel_aggregation._internal.sum_aggregator import SumAggregator

__all__ = [
    "Accumulation",
    "SumAccumulation",
    "MinMaxSumCountAccumulation",
    "HistogramAccumulation",
    "LastValueAccumulation",
    "Aggregation",
    "DefaultAggregation",
    "ExplicitBucketHistogramAggregation",
    "LastValueAggregation",
    "MinMaxSumCountAggregation",
    "SumAggregation",
    "AggregationTemporality",
    "Aggregator",
    "AggregatorHandle",
    "AggregatorKind",
    "SumAggregator",
    "MinMaxSumCountAggregator",
    "HistogramAggregator",
    "LastValueAggregator",
    "InstrumentDescriptor",
    "InstrumentType",
    "InstrumentValueType",
    "MetricDescriptor",
    "Metric",
    "Sum",
    "Gauge",
    "Histogram",
    "Summary",
    "NumberDataPoint",
    "HistogramDataPoint",
    "SummaryDataPoint",
    "ValueAtQuantile",
    "SynchronousMetricStorage",
    "AsynchronousMetricStorage",
    "InstrumentStorage",
    "OVERFLOW_ATTRIBUTES",
]
