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

from unittest import TestCase

from opentelemetry.trace import (
    NonRecordingSpan,
    SpanContext,
    TraceFlags,
    set_span_in_context,
)

from otel_aggregation import (
    AggregatorKind,
    DefaultAggregation,
    ExplicitBucketHistogramAggregation,
    InstrumentDescriptor,
    InstrumentType,
    InstrumentValueType,
    LastValueAggregation,
    MinMaxSumCountAggregation,
    SumAggregation,
)
from otel_aggregation.exemplar import AlwaysOffExemplarFilter


def _instrument(instrument_type, value_type=InstrumentValueType.LONG):
    return InstrumentDescriptor(
        "instrument", type=instrument_type, value_type=value_type
    )


def _sampled_context():
    span_context = SpanContext(
        trace_id=1,
        span_id=2,
        is_remote=False,
        trace_flags=TraceFlags(TraceFlags.SAMPLED),
    )
    return set_span_in_context(NonRecordingSpan(span_context))


class TestDefaultAggregation(TestCase):
    # pylint: disable=protected-access

    def test_sum_instruments(self):
        for instrument_type, is_monotonic in (
            (InstrumentType.COUNTER, True),
            (InstrumentType.UP_DOWN_COUNTER, False),
            (InstrumentType.OBSERVABLE_COUNTER, True),
            (InstrumentType.OBSERVABLE_UP_DOWN_COUNTER, False),
        ):
            with self.subTest(instrument_type=instrument_type):
                aggregator = DefaultAggregation()._create_aggregator(
                    _instrument(instrument_type)
                )
                self.assertIs(aggregator.kind, AggregatorKind.SUM)
                self.assertEqual(aggregator.is_monotonic, is_monotonic)
                self.assertIs(
                    aggregator.value_type, InstrumentValueType.LONG
                )

    def test_histogram(self):
        aggregator = DefaultAggregation()._create_aggregator(
            _instrument(InstrumentType.HISTOGRAM)
        )
        self.assertIs(aggregator.kind, AggregatorKind.HISTOGRAM)

    def test_observable_gauge(self):
        aggregator = DefaultAggregation()._create_aggregator(
            _instrument(InstrumentType.OBSERVABLE_GAUGE)
        )
        self.assertIs(aggregator.kind, AggregatorKind.LAST_VALUE)

    def test_invalid_instrument_type(self):
        with self.assertRaises(Exception):
            DefaultAggregation()._create_aggregator(_instrument(None))

    def test_trace_based_exemplars_by_default(self):
        aggregator = DefaultAggregation()._create_aggregator(
            _instrument(InstrumentType.COUNTER)
        )
        handle = aggregator.create_handle()

        handle.record_long(1)
        self.assertEqual(handle.accumulate_then_reset({}).exemplars, ())

        handle.record_long(2, {}, _sampled_context())
        exemplars = handle.accumulate_then_reset({}).exemplars
        self.assertEqual(len(exemplars), 1)
        self.assertEqual(exemplars[0].value, 2)
        self.assertEqual(exemplars[0].trace_id, 1)
        self.assertEqual(exemplars[0].span_id, 2)

    def test_exemplar_filter(self):
        aggregator = DefaultAggregation()._create_aggregator(
            _instrument(InstrumentType.COUNTER), AlwaysOffExemplarFilter()
        )
        handle = aggregator.create_handle()

        handle.record_long(2, {}, _sampled_context())
        self.assertEqual(handle.accumulate_then_reset({}).exemplars, ())


class TestAggregations(TestCase):
    # pylint: disable=protected-access

    def test_explicit_bucket_histogram(self):
        aggregator = ExplicitBucketHistogramAggregation(
            boundaries=(1, 2, 3), record_min_max=False
        )._create_aggregator(_instrument(InstrumentType.HISTOGRAM))

        self.assertEqual(aggregator.boundaries, (1, 2, 3))

        handle = aggregator.create_handle()
        handle.record_long(2, {}, _sampled_context())
        accumulation = handle.accumulate_then_reset({})

        self.assertEqual(accumulation.counts, (0, 0, 1, 0))
        self.assertIsNone(accumulation.min)
        self.assertEqual(len(accumulation.exemplars), 1)

    def test_sum(self):
        aggregator = SumAggregation()._create_aggregator(
            _instrument(InstrumentType.HISTOGRAM, InstrumentValueType.DOUBLE)
        )
        self.assertIs(aggregator.kind, AggregatorKind.SUM)
        self.assertFalse(aggregator.is_monotonic)
        self.assertIs(aggregator.value_type, InstrumentValueType.DOUBLE)

    def test_last_value(self):
        aggregator = LastValueAggregation()._create_aggregator(
            _instrument(InstrumentType.COUNTER)
        )
        self.assertIs(aggregator.kind, AggregatorKind.LAST_VALUE)

    def test_min_max_sum_count(self):
        aggregator = MinMaxSumCountAggregation()._create_aggregator(
            _instrument(InstrumentType.HISTOGRAM)
        )
        self.assertIs(aggregator.kind, AggregatorKind.MIN_MAX_SUM_COUNT)
