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
Immutable snapshots of folded measurement state.

An accumulation is produced by an aggregator handle once per collection
cycle and is never mutated afterwards. Exemplars travel with the
accumulation but are excluded from equality, two accumulations are equal
when their numeric state is equal.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from otel_aggregation._internal.exemplar.exemplar import Exemplar

_Number = Union[int, float]


@dataclass(frozen=True)
class SumAccumulation:
    value: _Number
    exemplars: Tuple[Exemplar, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class MinMaxSumCountAccumulation:
    count: int
    sum: _Number
    min: _Number
    max: _Number
    exemplars: Tuple[Exemplar, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class HistogramAccumulation:
    """
    Bucket counts plus sum and optional min/max.

    The bucket boundaries belong to the aggregator that produced this
    accumulation, ``counts`` has one more entry than there are boundaries.
    """

    counts: Tuple[int, ...]
    sum: _Number
    min: Optional[_Number] = None
    max: Optional[_Number] = None
    exemplars: Tuple[Exemplar, ...] = field(default=(), compare=False)

    @property
    def count(self) -> int:
        return sum(self.counts)


@dataclass(frozen=True)
class LastValueAccumulation:
    value: _Number
    time_unix_nano: int
    exemplars: Tuple[Exemplar, ...] = field(default=(), compare=False)


Accumulation = Union[
    SumAccumulation,
    MinMaxSumCountAccumulation,
    HistogramAccumulation,
    LastValueAccumulation,
]
