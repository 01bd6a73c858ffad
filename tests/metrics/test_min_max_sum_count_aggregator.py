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

from concurrent.futures import ThreadPoolExecutor
from math import inf
from random import randrange
from threading import Barrier, Lock
from unittest import TestCase

from otel_aggregation import (
    AggregationTemporality,
    AggregatorKind,
    InstrumentValueType,
    MetricDescriptor,
    MinMaxSumCountAccumulation,
    MinMaxSumCountAggregator,
    Summary,
    ValueAtQuantile,
)
from otel_aggregation._internal.attributes import attributes_key
from otel_aggregation._internal.min_max_sum_count_aggregator import (
    _MinMaxSumCountHandle,
)


class _Summarizer:
    def __init__(self, aggregator):
        self._aggregator = aggregator
        self._lock = Lock()
        self.accumulation = None

    def process(self, accumulation):
        if accumulation is None:
            return
        with self._lock:
            if self.accumulation is None:
                self.accumulation = accumulation
                return
            self.accumulation = self._aggregator.merge(
                self.accumulation, accumulation
            )


class TestMinMaxSumCountAggregator(TestCase):
    def setUp(self):
        self.aggregator = MinMaxSumCountAggregator(InstrumentValueType.LONG)

    def test_kind(self):
        self.assertIs(self.aggregator.kind, AggregatorKind.MIN_MAX_SUM_COUNT)

    def test_create_handle(self):
        self.assertIsInstance(
            self.aggregator.create_handle(), _MinMaxSumCountHandle
        )

    def test_recordings(self):
        handle = self.aggregator.create_handle()

        handle.record_long(100)
        self.assertEqual(
            handle.accumulate_then_reset({}),
            MinMaxSumCountAccumulation(1, 100, 100, 100),
        )
        handle.record_long(200)
        self.assertEqual(
            handle.accumulate_then_reset({}),
            MinMaxSumCountAccumulation(1, 200, 200, 200),
        )
        handle.record_long(-75)
        self.assertEqual(
            handle.accumulate_then_reset({}),
            MinMaxSumCountAccumulation(1, -75, -75, -75),
        )

    def test_accumulate_then_reset(self):
        handle = self.aggregator.create_handle()
        self.assertIsNone(handle.accumulate_then_reset({}))

        handle.record_long(100)
        self.assertEqual(
            handle.accumulate_then_reset({}),
            MinMaxSumCountAccumulation(1, 100, 100, 100),
        )
        self.assertIsNone(handle.accumulate_then_reset({}))

        handle.record_long(100)
        self.assertEqual(
            handle.accumulate_then_reset({}),
            MinMaxSumCountAccumulation(1, 100, 100, 100),
        )
        self.assertIsNone(handle.accumulate_then_reset({}))

    def test_reset_restores_identity(self):
        # pylint: disable=protected-access
        handle = self.aggregator.create_handle()
        handle.record_long(3)
        handle.record_long(9)
        handle.accumulate_then_reset({})

        self.assertEqual(handle._count, 0)
        self.assertEqual(handle._sum, 0)
        self.assertEqual(handle._min, inf)
        self.assertEqual(handle._max, -inf)

    def test_merge(self):
        first = MinMaxSumCountAccumulation(2, 10, 3, 7)
        second = MinMaxSumCountAccumulation(3, 30, 1, 20)
        third = MinMaxSumCountAccumulation(1, -4, -4, -4)

        self.assertEqual(
            self.aggregator.merge(first, second),
            MinMaxSumCountAccumulation(5, 40, 1, 20),
        )
        self.assertEqual(
            self.aggregator.merge(first, second),
            self.aggregator.merge(second, first),
        )
        self.assertEqual(
            self.aggregator.merge(self.aggregator.merge(first, second), third),
            self.aggregator.merge(first, self.aggregator.merge(second, third)),
        )

    def test_diff(self):
        previous = MinMaxSumCountAccumulation(2, 10, 3, 7)
        current = MinMaxSumCountAccumulation(5, 40, 1, 20)

        # min and max come from the current accumulation
        self.assertEqual(
            self.aggregator.diff(previous, current),
            MinMaxSumCountAccumulation(3, 30, 1, 20),
        )

    def test_to_metric_data(self):
        handle = self.aggregator.create_handle()
        handle.record_long(10)

        metric = self.aggregator.to_metric_data(
            None,
            None,
            MetricDescriptor("name", "description", "unit"),
            {attributes_key({}): handle.accumulate_then_reset({})},
            AggregationTemporality.CUMULATIVE,
            0,
            10,
            100,
        )

        self.assertEqual(metric.name, "name")
        self.assertEqual(metric.unit, "unit")
        self.assertIsInstance(metric.data, Summary)

        point = metric.data.data_points[0]
        self.assertEqual(point.start_time_unix_nano, 0)
        self.assertEqual(point.time_unix_nano, 100)
        self.assertEqual(point.count, 1)
        self.assertEqual(point.sum, 10)
        self.assertEqual(
            point.quantile_values,
            [ValueAtQuantile(0.0, 10), ValueAtQuantile(1.0, 10)],
        )

    def test_to_metric_data_delta_starts_at_last_collection(self):
        metric = self.aggregator.to_metric_data(
            None,
            None,
            MetricDescriptor("name"),
            {attributes_key({"a": 1}): MinMaxSumCountAccumulation(1, 5, 5, 5)},
            AggregationTemporality.DELTA,
            0,
            10,
            100,
        )

        point = metric.data.data_points[0]
        self.assertEqual(point.attributes, {"a": 1})
        self.assertEqual(point.start_time_unix_nano, 10)

    def test_multithreaded_updates(self):
        handle = self.aggregator.create_handle()
        summarizer = _Summarizer(self.aggregator)
        updates = [1, 2, 3, 5, 7, 11, 13, 17, 19, 23]
        number_of_updates = 1000
        barrier = Barrier(len(updates))

        def record(update):
            barrier.wait()
            for _ in range(number_of_updates):
                handle.record_long(update)
                if randrange(10) == 0:
                    summarizer.process(handle.accumulate_then_reset({}))

        with ThreadPoolExecutor(max_workers=len(updates)) as executor:
            list(executor.map(record, updates))

        # make sure everything gets merged when all the recording is done.
        summarizer.process(handle.accumulate_then_reset({}))

        self.assertEqual(
            summarizer.accumulation,
            MinMaxSumCountAccumulation(
                len(updates) * number_of_updates, 101000, 1, 23
            ),
        )
