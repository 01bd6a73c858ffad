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
from logging import WARNING
from unittest import TestCase

from otel_aggregation import (
    AggregationTemporality,
    DefaultAggregation,
    ExplicitBucketHistogramAggregation,
    InstrumentDescriptor,
    InstrumentStorage,
    InstrumentType,
    InstrumentValueType,
)


class TestMultipleReaders(TestCase):
    def setUp(self):
        self.counter = InstrumentDescriptor(
            "requests",
            type=InstrumentType.COUNTER,
            value_type=InstrumentValueType.LONG,
        )

    def test_readers_do_not_share_handles(self):
        storage = InstrumentStorage.create(
            self.counter,
            DefaultAggregation(),
            {
                "cumulative": AggregationTemporality.CUMULATIVE,
                "delta": AggregationTemporality.DELTA,
            },
        )
        self.assertEqual(storage.readers, ["cumulative", "delta"])

        storage.record_long(2, {"route": "/"})
        storage.record_long(3, {"route": "/"})

        self.assertEqual(
            storage.collect("delta", 0, 10).data.data_points[0].value, 5
        )

        storage.record_long(4, {"route": "/"})

        # The cumulative reader has not collected yet, the delta reader
        # collecting first must not reset its view.
        self.assertEqual(
            storage.collect("cumulative", 0, 15).data.data_points[0].value, 9
        )
        self.assertEqual(
            storage.collect("delta", 0, 20).data.data_points[0].value, 4
        )

        storage.record_long(1, {"route": "/"})

        cumulative = storage.collect("cumulative", 0, 30)
        delta = storage.collect("delta", 0, 30)

        self.assertEqual(cumulative.data.data_points[0].value, 10)
        self.assertEqual(cumulative.data.data_points[0].start_time_unix_nano, 0)
        self.assertEqual(delta.data.data_points[0].value, 1)
        self.assertEqual(delta.data.data_points[0].start_time_unix_nano, 20)

    def test_concurrent_histogram_recordings(self):
        storage = InstrumentStorage.create(
            InstrumentDescriptor(
                "latency", unit="ms", type=InstrumentType.HISTOGRAM
            ),
            ExplicitBucketHistogramAggregation(boundaries=(10, 100)),
            {
                "cumulative": AggregationTemporality.CUMULATIVE,
                "delta": AggregationTemporality.DELTA,
            },
        )

        def record(value):
            for _ in range(500):
                storage.record_double(value, {"route": "/"})

        with ThreadPoolExecutor(max_workers=3) as executor:
            list(executor.map(record, (1.0, 50.0, 500.0)))

        for reader in ("cumulative", "delta"):
            point = storage.collect(reader, 0, 10).data.data_points[0]
            self.assertEqual(point.bucket_counts, (500, 500, 500))
            self.assertEqual(point.count, 1500)
            self.assertEqual(point.sum, 500 * 551.0)
            self.assertEqual(point.min, 1.0)
            self.assertEqual(point.max, 500.0)

    def test_cardinality_limit_per_reader(self):
        storage = InstrumentStorage.create(
            self.counter,
            DefaultAggregation(),
            {"a": AggregationTemporality.DELTA},
            cardinality_limit=1,
        )

        with self.assertLogs(level=WARNING):
            storage.record_long(1, {"user": "alice"})
            storage.record_long(1, {"user": "bob"})

        attributes = sorted(
            str(point.attributes)
            for point in storage.collect("a", 0, 10).data.data_points
        )
        self.assertEqual(
            attributes,
            ["{'otel.metric.overflow': True}", "{'user': 'alice'}"],
        )

    def test_shutdown(self):
        storage = InstrumentStorage.create(
            self.counter,
            DefaultAggregation(),
            {
                "cumulative": AggregationTemporality.CUMULATIVE,
                "delta": AggregationTemporality.DELTA,
            },
        )

        storage.record_long(3)

        metrics = storage.shutdown(0, 10)

        self.assertEqual(metrics["cumulative"].data.data_points[0].value, 3)
        self.assertEqual(metrics["delta"].data.data_points[0].value, 3)

        with self.assertLogs(level=WARNING):
            storage.record_long(3)

        self.assertIsNone(storage.collect("delta", 0, 20))
