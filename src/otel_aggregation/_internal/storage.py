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
Per instrument, per reader accumulation storage.

A storage owns the attribute set to handle map of one instrument as seen
by one reader and turns every collection cycle into at most one
``Metric``. Readers never share a storage, so one reader resetting its
handles does not change what another reader sees.
"""

from functools import reduce
from logging import getLogger
from threading import Lock
from time import time_ns
from typing import (
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
)

from opentelemetry.context import Context
from opentelemetry.metrics import CallbackOptions, Observation
from opentelemetry.util.types import Attributes

from otel_aggregation._internal.accumulation import Accumulation
from otel_aggregation._internal.aggregation import Aggregation
from otel_aggregation._internal.aggregation_temporality import (
    AggregationTemporality,
)
from otel_aggregation._internal.aggregator import (
    Aggregator,
    AggregatorHandle,
    Clock,
)
from otel_aggregation._internal.attributes import (
    AttributesKey,
    attributes_key,
    key_attributes,
)
from otel_aggregation._internal.descriptor import (
    InstrumentDescriptor,
    MetricDescriptor,
)
from otel_aggregation._internal.exemplar.exemplar_filter import (
    ExemplarFilter,
)
from otel_aggregation._internal.point import Metric

_logger = getLogger(__name__)

_DEFAULT_CARDINALITY_LIMIT = 2000

OVERFLOW_ATTRIBUTES = {"otel.metric.overflow": True}
_OVERFLOW_KEY = attributes_key(OVERFLOW_ATTRIBUTES)

Callback = Callable[[CallbackOptions], Iterable[Observation]]


def _validate_cardinality_limit(cardinality_limit: int) -> None:
    if cardinality_limit < 1:
        raise ValueError(
            f"Cardinality limit must be positive, got {cardinality_limit}"
        )


class SynchronousMetricStorage:
    """
    Stores the handles of a synchronous instrument for one reader.

    Args:
        instrument: The instrument whose measurements are stored.
        aggregator: Creates the handles and folds their accumulations.
        temporality: The aggregation temporality preferred by the reader.
        resource: Passed through to the exported ``Metric``.
        scope: Passed through to the exported ``Metric``.
        cardinality_limit: Maximum number of attribute sets with their own
            handle. Measurements for further attribute sets are folded into
            a single handle keyed by ``OVERFLOW_ATTRIBUTES``.
        max_idle_collections: When set, attribute sets with no measurements
            for that many consecutive collections are dropped.
    """

    def __init__(
        self,
        instrument: InstrumentDescriptor,
        aggregator: Aggregator,
        temporality: AggregationTemporality,
        resource=None,
        scope=None,
        cardinality_limit: int = _DEFAULT_CARDINALITY_LIMIT,
        max_idle_collections: Optional[int] = None,
    ):
        _validate_cardinality_limit(cardinality_limit)
        if max_idle_collections is not None and max_idle_collections < 1:
            raise ValueError(
                "max_idle_collections must be positive, got "
                f"{max_idle_collections}"
            )

        self._instrument = instrument
        self._descriptor = MetricDescriptor.from_instrument(instrument)
        self._aggregator = aggregator
        self._temporality = temporality
        self._resource = resource
        self._scope = scope
        self._cardinality_limit = cardinality_limit
        self._max_idle_collections = max_idle_collections

        # Guards insertions into and removals from _handles.
        self._lock = Lock()
        # Serializes collect and shutdown.
        self._collect_lock = Lock()

        self._handles: Dict[AttributesKey, AggregatorHandle] = {}
        self._cumulative: Dict[AttributesKey, Accumulation] = {}
        self._idle_collections: Dict[AttributesKey, int] = {}
        self._last_collection_unix_nano = None
        self._overflow_count = 0
        self._closed = False
        self._warned_closed = False

    @property
    def temporality(self) -> AggregationTemporality:
        return self._temporality

    @property
    def overflow_count(self) -> int:
        """Number of lookups redirected to the overflow attribute set."""
        return self._overflow_count

    def _handle_count(self) -> int:
        return len(self._handles) - (_OVERFLOW_KEY in self._handles)

    def get_or_create_handle(self, attributes: Attributes) -> AggregatorHandle:
        key = attributes_key(attributes)

        handle = self._handles.get(key)
        if handle is not None:
            return handle

        with self._lock:
            handle = self._handles.get(key)
            if handle is not None:
                return handle

            if self._handle_count() >= self._cardinality_limit:
                if self._overflow_count == 0:
                    _logger.warning(
                        "Instrument %s reached its cardinality limit of %s "
                        "attribute sets, further attribute sets are "
                        "aggregated under %s.",
                        self._instrument.name,
                        self._cardinality_limit,
                        OVERFLOW_ATTRIBUTES,
                    )
                self._overflow_count += 1
                key = _OVERFLOW_KEY
                handle = self._handles.get(key)
                if handle is not None:
                    return handle

            handle = self._aggregator.create_handle()
            self._handles[key] = handle
            return handle

    def record_long(
        self,
        value: int,
        attributes: Attributes = None,
        context: Optional[Context] = None,
    ) -> None:
        if self._check_closed():
            return
        handle = self.get_or_create_handle(attributes)
        while not handle.record_long(value, attributes, context):
            handle = self.get_or_create_handle(attributes)

    def record_double(
        self,
        value: float,
        attributes: Attributes = None,
        context: Optional[Context] = None,
    ) -> None:
        if self._check_closed():
            return
        handle = self.get_or_create_handle(attributes)
        while not handle.record_double(value, attributes, context):
            handle = self.get_or_create_handle(attributes)

    def _check_closed(self) -> bool:
        if not self._closed:
            return False
        if not self._warned_closed:
            self._warned_closed = True
            _logger.warning(
                "Dropping measurement for instrument %s, its storage has "
                "been shut down.",
                self._instrument.name,
            )
        return True

    def collect(
        self, start_time_unix_nano: int, time_unix_nano: int
    ) -> Optional[Metric]:
        """
        Snapshots and resets every handle and returns the resulting metric,
        ``None`` if there is no point to export.

        Args:
            start_time_unix_nano: When the instrument was created, the start
                of every cumulative point.
            time_unix_nano: The time of this collection. The next delta
                points start here.
        """
        with self._collect_lock:
            return self._collect(start_time_unix_nano, time_unix_nano)

    def _collect(
        self, start_time_unix_nano: int, time_unix_nano: int
    ) -> Optional[Metric]:
        with self._lock:
            handles = list(self._handles.items())

        last_collection_unix_nano = self._last_collection_unix_nano
        if last_collection_unix_nano is None:
            last_collection_unix_nano = start_time_unix_nano
        self._last_collection_unix_nano = time_unix_nano

        accumulations = {}
        evicted = []

        for key, handle in handles:
            accumulation = handle.accumulate_then_reset(key_attributes(key))

            if accumulation is not None:
                self._idle_collections.pop(key, None)
            elif self._max_idle_collections is not None:
                idle_collections = self._idle_collections.get(key, 0) + 1
                if idle_collections >= self._max_idle_collections:
                    accumulation = self._evict(key, handle)
                    evicted.append(key)
                else:
                    self._idle_collections[key] = idle_collections

            if accumulation is not None:
                accumulations[key] = accumulation

        if self._temporality is AggregationTemporality.CUMULATIVE:
            for key, accumulation in accumulations.items():
                previous = self._cumulative.get(key)
                if previous is not None:
                    accumulation = self._aggregator.merge(
                        previous, accumulation
                    )
                self._cumulative[key] = accumulation

            accumulations = dict(self._cumulative)

            for key in evicted:
                self._cumulative.pop(key, None)

        if not accumulations:
            return None

        return self._aggregator.to_metric_data(
            self._resource,
            self._scope,
            self._descriptor,
            accumulations,
            self._temporality,
            start_time_unix_nano,
            last_collection_unix_nano,
            time_unix_nano,
        )

    def _evict(
        self, key: AttributesKey, handle: AggregatorHandle
    ) -> Optional[Accumulation]:
        with self._lock:
            del self._handles[key]
        self._idle_collections.pop(key, None)

        _logger.debug(
            "Evicting idle attribute set %s of instrument %s.",
            key_attributes(key),
            self._instrument.name,
        )

        # Picks up measurements recorded by threads that got the handle
        # before it was removed, later ones are refused and recorded into
        # a new handle.
        return handle.evict(key_attributes(key))

    def shutdown(
        self, start_time_unix_nano: int, time_unix_nano: int
    ) -> Optional[Metric]:
        """
        Stops accepting measurements, runs a final collection and releases
        every handle.

        Measurements racing with the shutdown itself may be dropped.
        """
        with self._collect_lock:
            self._closed = True
            metric = self._collect(start_time_unix_nano, time_unix_nano)
            with self._lock:
                self._handles.clear()
            self._cumulative.clear()
            self._idle_collections.clear()
            return metric


class AsynchronousMetricStorage:
    """
    Stores the observations of an asynchronous instrument for one reader.

    Observations are cumulative values reported by callbacks once per
    collection. CUMULATIVE readers get them unchanged, DELTA readers get the
    difference with the previous collection.

    Args:
        instrument: The observable instrument.
        aggregator: Folds every observation into an accumulation.
        temporality: The aggregation temporality preferred by the reader.
        resource: Passed through to the exported ``Metric``.
        scope: Passed through to the exported ``Metric``.
        callbacks: Called on every collection, each returns the
            observations of the instrument.
        cardinality_limit: Maximum number of attribute sets per collection,
            observations of further attribute sets are merged under
            ``OVERFLOW_ATTRIBUTES``.
    """

    def __init__(
        self,
        instrument: InstrumentDescriptor,
        aggregator: Aggregator,
        temporality: AggregationTemporality,
        resource=None,
        scope=None,
        callbacks: Sequence[Callback] = (),
        cardinality_limit: int = _DEFAULT_CARDINALITY_LIMIT,
    ):
        _validate_cardinality_limit(cardinality_limit)

        self._instrument = instrument
        self._descriptor = MetricDescriptor.from_instrument(instrument)
        self._aggregator = aggregator
        self._temporality = temporality
        self._resource = resource
        self._scope = scope
        self._callbacks = list(callbacks)
        self._cardinality_limit = cardinality_limit

        self._lock = Lock()
        self._collect_lock = Lock()
        self._accumulations: Dict[AttributesKey, Accumulation] = {}
        # Last observation of every attribute set beyond the cardinality
        # limit, merged under OVERFLOW_ATTRIBUTES on collection.
        self._overflowed: Dict[AttributesKey, Accumulation] = {}
        self._previous: Dict[AttributesKey, Accumulation] = {}
        self._last_collection_unix_nano = None

    @property
    def temporality(self) -> AggregationTemporality:
        return self._temporality

    def register_callback(self, callback: Callback) -> None:
        self._callbacks.append(callback)

    def record_long(self, value: int, attributes: Attributes = None) -> None:
        self._record(value, attributes)

    def record_double(
        self, value: float, attributes: Attributes = None
    ) -> None:
        self._record(value, attributes)

    def _record(self, value, attributes: Attributes) -> None:
        key = attributes_key(attributes)
        accumulation = self._aggregator.accumulate(value, attributes)

        with self._lock:
            if key in self._accumulations:
                observations = self._accumulations
            elif (
                key in self._overflowed
                or key == _OVERFLOW_KEY
                or len(self._accumulations) >= self._cardinality_limit
            ):
                observations = self._overflowed
            else:
                observations = self._accumulations

            if key in observations:
                _logger.debug(
                    "Instrument %s observed attribute set %s more than once "
                    "in a collection, keeping the last observation.",
                    self._instrument.name,
                    attributes,
                )
            observations[key] = accumulation

    def collect(
        self,
        start_time_unix_nano: int,
        time_unix_nano: int,
        timeout_millis: float = 10_000,
    ) -> Optional[Metric]:
        """
        Runs the callbacks and returns the resulting metric, ``None`` if
        there is no point to export.
        """
        with self._collect_lock:
            options = CallbackOptions(timeout_millis=timeout_millis)

            for callback in list(self._callbacks):
                try:
                    for observation in callback(options):
                        self._record(observation.value, observation.attributes)
                # pylint: disable=broad-except
                except Exception:
                    _logger.exception(
                        "Callback failed for instrument %s.",
                        self._instrument.name,
                    )

            with self._lock:
                current = self._accumulations
                overflowed = self._overflowed
                self._accumulations = {}
                self._overflowed = {}

            if overflowed:
                current[_OVERFLOW_KEY] = reduce(
                    self._aggregator.merge, overflowed.values()
                )

            last_collection_unix_nano = self._last_collection_unix_nano
            if last_collection_unix_nano is None:
                last_collection_unix_nano = start_time_unix_nano
            self._last_collection_unix_nano = time_unix_nano

            if self._temporality is AggregationTemporality.DELTA:
                accumulations = {}
                for key, accumulation in current.items():
                    previous = self._previous.get(key)
                    if previous is not None:
                        accumulation = self._aggregator.diff(
                            previous, accumulation
                        )
                    accumulations[key] = accumulation
                self._previous = current
            else:
                accumulations = current

            if not accumulations:
                return None

            return self._aggregator.to_metric_data(
                self._resource,
                self._scope,
                self._descriptor,
                accumulations,
                self._temporality,
                start_time_unix_nano,
                last_collection_unix_nano,
                time_unix_nano,
            )


class InstrumentStorage:
    """
    Writes the measurements of one synchronous instrument into the storage
    of every reader.

    Args:
        storages: One storage per reader, keyed by any hashable reader
            identity.
    """

    def __init__(self, storages: Mapping[Hashable, SynchronousMetricStorage]):
        self._storages = dict(storages)

    @classmethod
    def create(
        cls,
        instrument: InstrumentDescriptor,
        aggregation: Aggregation,
        temporalities: Mapping[Hashable, AggregationTemporality],
        resource=None,
        scope=None,
        exemplar_filter: Optional[ExemplarFilter] = None,
        clock: Clock = time_ns,
        **storage_options,
    ) -> "InstrumentStorage":
        """Creates one storage per reader, all sharing one aggregator."""
        # pylint: disable=protected-access
        aggregator = aggregation._create_aggregator(
            instrument, exemplar_filter, clock
        )
        return cls(
            {
                reader: SynchronousMetricStorage(
                    instrument,
                    aggregator,
                    temporality,
                    resource,
                    scope,
                    **storage_options,
                )
                for reader, temporality in temporalities.items()
            }
        )

    @property
    def readers(self) -> List[Hashable]:
        return list(self._storages)

    def record_long(
        self,
        value: int,
        attributes: Attributes = None,
        context: Optional[Context] = None,
    ) -> None:
        for storage in self._storages.values():
            storage.record_long(value, attributes, context)

    def record_double(
        self,
        value: float,
        attributes: Attributes = None,
        context: Optional[Context] = None,
    ) -> None:
        for storage in self._storages.values():
            storage.record_double(value, attributes, context)

    def collect(
        self, reader: Hashable, start_time_unix_nano: int, time_unix_nano: int
    ) -> Optional[Metric]:
        return self._storages[reader].collect(
            start_time_unix_nano, time_unix_nano
        )

    def shutdown(
        self, start_time_unix_nano: int, time_unix_nano: int
    ) -> Dict[Hashable, Optional[Metric]]:
        """Runs the final collection of every reader."""
        return {
            reader: storage.shutdown(start_time_unix_nano, time_unix_nano)
            for reader, storage in self._storages.items()
        }
