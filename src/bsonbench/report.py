"""perf.send report records.

Each successful task produces one record::

    {
      "info": {"test_name": "flat_bson_serialize_pymongo",
               "tags": ["nightly"],
               "args": {"warmup": 1000, "iterations": 1000, "check_keys": 0}},
      "metrics": [{"name": "megabytes_per_second", "type": "MEAN", "value": 812.4}, ...]
    }

The schema only accepts numeric ``args``, so benchmark options are
coerced to numbers by a small table of per-option rules with a
fallback for options the table does not know.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from bsonbench.stats import ThroughputStats

log = logging.getLogger("bsonbench")

METRIC_NAME = "megabytes_per_second"

# Sentinel for option values that have no numeric meaning.
NON_NUMERIC = -1


class PerfSendMetricType(str, enum.Enum):
    """Metric types understood by perf.send."""

    SUM = "SUM"
    COUNT = "COUNT"
    MEDIAN = "MEDIAN"
    MEAN = "MEAN"
    MIN = "MIN"
    MAX = "MAX"
    STANDARD_DEVIATION = "STANDARD_DEVIATION"
    THROUGHPUT = "THROUGHPUT"
    LATENCY = "LATENCY"
    PERCENTILE_99TH = "PERCENTILE_99TH"
    PERCENTILE_95TH = "PERCENTILE_95TH"
    PERCENTILE_90TH = "PERCENTILE_90TH"
    PERCENTILE_80TH = "PERCENTILE_80TH"
    PERCENTILE_50TH = "PERCENTILE_50TH"


@dataclass
class Metric:
    """One named statistic."""

    name: str
    value: float
    type: PerfSendMetricType | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name}
        if self.type is not None:
            d["type"] = self.type.value
        d["value"] = self.value
        return d


@dataclass
class PerfSendResult:
    """A single perf.send record."""

    test_name: str
    args: dict[str, float | int] = field(default_factory=dict)
    tags: list[str] | None = None
    metrics: list[Metric] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        info: dict[str, Any] = {"test_name": self.test_name}
        if self.tags is not None:
            info["tags"] = list(self.tags)
        info["args"] = dict(self.args)
        return {"info": info, "metrics": [m.to_dict() for m in self.metrics]}

    def metric(self, kind: PerfSendMetricType) -> float:
        """Value of the first metric of type *kind*.

        Raises:
            KeyError: If no metric of that type is present.
        """
        for m in self.metrics:
            if m.type == kind:
                return m.value
        raise KeyError(kind.value)


def throughput_metrics(stats: ThroughputStats) -> list[Metric]:
    """The five throughput metrics reported for every task."""
    return [
        Metric(METRIC_NAME, stats.mean, PerfSendMetricType.MEAN),
        Metric(METRIC_NAME, stats.median, PerfSendMetricType.MEDIAN),
        Metric(METRIC_NAME, stats.min, PerfSendMetricType.MIN),
        Metric(METRIC_NAME, stats.max, PerfSendMetricType.MAX),
        Metric(METRIC_NAME, stats.stdev, PerfSendMetricType.STANDARD_DEVIATION),
    ]


# ---------------------------------------------------------------------------
# Option coercion
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_default(value: Any) -> float | int:
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return value  # type: ignore[no-any-return]
    return NON_NUMERIC


def _coerce_boolean(value: Any) -> float | int:
    if isinstance(value, bool):
        return int(value)
    return _coerce_default(value)


def _coerce_numeric(value: Any) -> float | int:
    if _is_number(value):
        return value  # type: ignore[no-any-return]
    return _coerce_default(value)


def _pass_through(value: Any) -> Any:
    return value


def _coerce_utf8_validation(value: Any) -> float | int:
    if isinstance(value, dict):
        utf8 = value.get("utf8")
        return int(utf8) if isinstance(utf8, bool) else 1
    if isinstance(value, bool):
        return int(value)
    return 1


@dataclass(frozen=True)
class OptionRule:
    """How one option is reported: under which key, converted how."""

    coerce: Callable[[Any], float | int]
    report_as: str | None = None  # defaults to the option name


OPTION_RULES: dict[str, OptionRule] = {
    "check_keys": OptionRule(_coerce_boolean),
    "tz_aware": OptionRule(_coerce_boolean),
    "index": OptionRule(_pass_through),
    "uuid_representation": OptionRule(_coerce_numeric),
    "validation": OptionRule(_coerce_utf8_validation, report_as="utf8Validation"),
}

_DEFAULT_RULE = OptionRule(_coerce_default)


def coerce_options(options: dict[str, Any]) -> dict[str, float | int]:
    """Convert benchmark options into numeric report arguments.

    Booleans become 0/1, numbers pass through, ``index`` is copied as
    given, ``validation`` becomes ``utf8Validation`` and anything else
    becomes -1.
    """
    output: dict[str, float | int] = {}
    for key, value in options.items():
        rule = OPTION_RULES.get(key, _DEFAULT_RULE)
        output[rule.report_as or key] = rule.coerce(value)
    return output


# ---------------------------------------------------------------------------
# I/O
# ---------------------------------------------------------------------------


def write_results(path: Path, results: list[PerfSendResult]) -> None:
    """Write a list of records as an indented JSON array."""
    path.write_text(json.dumps([r.to_dict() for r in results], indent=2) + "\n")
    log.info("Wrote %d result(s) to %s", len(results), path)


def write_result(path: Path, result: PerfSendResult) -> None:
    """Write a single record as an indented JSON object."""
    path.write_text(json.dumps(result.to_dict(), indent=2) + "\n")
    log.info("Wrote %s", path)
