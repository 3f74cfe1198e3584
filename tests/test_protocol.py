"""Tests for bsonbench.protocol and the wire form of bsonbench.errors."""

from __future__ import annotations

import io
import json
import unittest

from bsonbench.errors import (
    BenchError,
    DocumentReadError,
    InstallError,
    OperationFailed,
    RemoteError,
    WorkerCrashed,
    WorkerError,
    error_from_dict,
    error_to_dict,
)
from bsonbench.protocol import (
    RETURN_ERROR,
    RETURN_RESULT,
    RUN_BENCHMARK,
    BenchmarkResult,
    BenchmarkSpecification,
    error_message,
    read_message,
    result_message,
    run_benchmark_message,
    unpack_reply,
    write_message,
)

from bsonbench_test_helpers import make_benchmark


class TestBenchmarkSpecification(unittest.TestCase):
    def test_wire_keys(self) -> None:
        spec = make_benchmark(tags=["nightly"], install_location="/tmp/x", options={"a": 1})
        d = spec.to_dict()
        self.assertEqual(d["documentPath"], "/fixtures/flat_bson.json")
        self.assertEqual(d["installLocation"], "/tmp/x")
        self.assertEqual(d["tags"], ["nightly"])
        self.assertEqual(d["options"], {"a": 1})

    def test_optional_keys_omitted(self) -> None:
        d = make_benchmark().to_dict()
        self.assertNotIn("tags", d)
        self.assertNotIn("installLocation", d)

    def test_round_trip(self) -> None:
        spec = make_benchmark(tags=["t"], install_location="/tmp/x", options={"check_keys": True})
        self.assertEqual(BenchmarkSpecification.from_dict(spec.to_dict()), spec)

    def test_from_dict_defaults(self) -> None:
        spec = BenchmarkSpecification.from_dict(
            {"documentPath": "a.json", "operation": "serialize", "library": "bson@0.5.10"}
        )
        self.assertEqual(spec.iterations, 1000)
        self.assertEqual(spec.warmup, 1000)
        self.assertEqual(spec.options, {})

    def test_fixture_name(self) -> None:
        self.assertEqual(make_benchmark(document_path="/x/deep_bson.json").fixture_name, "deep_bson")
        self.assertEqual(make_benchmark(document_path="/x/raw").fixture_name, "raw")

    def test_validate_ok(self) -> None:
        self.assertEqual(make_benchmark().validate(), [])

    def test_validate_errors(self) -> None:
        errors = make_benchmark(operation="compress", iterations=-1, warmup=True).validate()
        self.assertEqual(len(errors), 3)


class TestMessages(unittest.TestCase):
    def test_message_types(self) -> None:
        self.assertEqual(run_benchmark_message(make_benchmark())["type"], RUN_BENCHMARK)
        result = BenchmarkResult(duration_millis=(1.0,), document_size_bytes=10)
        self.assertEqual(result_message(result)["type"], RETURN_RESULT)
        self.assertEqual(error_message(WorkerError("boom"))["type"], RETURN_ERROR)

    def test_write_then_read(self) -> None:
        stream = io.StringIO()
        write_message(stream, {"type": "x", "n": 1})
        self.assertTrue(stream.getvalue().endswith("\n"))
        stream.seek(0)
        self.assertEqual(read_message(stream), {"type": "x", "n": 1})

    def test_read_eof(self) -> None:
        self.assertIsNone(read_message(io.StringIO("")))

    def test_read_non_object(self) -> None:
        with self.assertRaises(ValueError):
            read_message(io.StringIO("[1, 2]\n"))

    def test_read_invalid_json(self) -> None:
        with self.assertRaises(ValueError):
            read_message(io.StringIO("{not json\n"))

    def test_unpack_result(self) -> None:
        msg = {"type": RETURN_RESULT, "result": {"durationMillis": [1, 2.5], "documentSizeBytes": 9}}
        reply = unpack_reply(msg)
        self.assertEqual(reply, BenchmarkResult(duration_millis=(1.0, 2.5), document_size_bytes=9))

    def test_unpack_error(self) -> None:
        reply = unpack_reply(error_message(DocumentReadError("Failed to read test document")))
        self.assertIsInstance(reply, DocumentReadError)

    def test_unpack_unknown(self) -> None:
        self.assertIsInstance(unpack_reply({"type": "hello"}), BenchError)


class TestErrorWireForm(unittest.TestCase):
    def test_hierarchy(self) -> None:
        self.assertTrue(issubclass(DocumentReadError, WorkerError))
        self.assertTrue(issubclass(WorkerError, BenchError))
        self.assertTrue(issubclass(InstallError, BenchError))
        self.assertFalse(issubclass(InstallError, WorkerError))

    def test_to_dict_without_cause(self) -> None:
        self.assertEqual(
            error_to_dict(InstallError("nope")), {"name": "InstallError", "message": "nope"}
        )

    def test_cause_chain_survives(self) -> None:
        try:
            try:
                raise ValueError("key '$bad' must not start with '$'")
            except ValueError as exc:
                raise OperationFailed("operation under test failed") from exc
        except OperationFailed as exc:
            data = json.loads(json.dumps(exc.to_dict()))

        rebuilt = error_from_dict(data)
        self.assertIsInstance(rebuilt, OperationFailed)
        self.assertEqual(str(rebuilt), "operation under test failed")
        cause = rebuilt.__cause__
        self.assertIsInstance(cause, RemoteError)
        assert isinstance(cause, RemoteError)
        self.assertEqual(cause.name, "ValueError")
        self.assertIn("$bad", cause.remote_message)

    def test_remote_error_round_trips_name(self) -> None:
        data = error_to_dict(RemoteError("InvalidDocument", "bad"))
        self.assertEqual(data, {"name": "InvalidDocument", "message": "bad"})

    def test_unknown_name_becomes_remote(self) -> None:
        error = error_from_dict({"name": "SomethingElse", "message": "x"})
        self.assertIsInstance(error, RemoteError)

    def test_missing_fields(self) -> None:
        error = error_from_dict({})
        self.assertIsInstance(error, WorkerError)

    def test_worker_crashed_fields(self) -> None:
        error = WorkerCrashed("worker killed by SIGSEGV", exit_code=-11, signature="Segfault")
        self.assertEqual(error.exit_code, -11)
        self.assertEqual(error.message, "worker killed by SIGSEGV")


if __name__ == "__main__":
    unittest.main()
