"""Tests for bsonbench.specifier."""

from __future__ import annotations

import unittest
from pathlib import Path

from bsonbench.errors import InvalidSpecifier
from bsonbench.specifier import GIT, LOCAL, REGISTRY, VersionSpecifier


class TestParse(unittest.TestCase):
    def test_registry_full_version(self) -> None:
        spec = VersionSpecifier.parse("pymongo@4.6.0")
        self.assertEqual(spec.kind, REGISTRY)
        self.assertEqual(spec.package_name, "pymongo")
        self.assertEqual(spec.version, "4.6.0")
        self.assertIsNone(spec.ref)
        self.assertIsNone(spec.path)

    def test_registry_partial_versions(self) -> None:
        self.assertEqual(VersionSpecifier.parse("pymongo@4").version, "4")
        self.assertEqual(VersionSpecifier.parse("pymongo@4.6").version, "4.6")

    def test_registry_latest(self) -> None:
        spec = VersionSpecifier.parse("bson@latest")
        self.assertEqual(spec.kind, REGISTRY)
        self.assertEqual(spec.version, "latest")

    def test_git_ref(self) -> None:
        spec = VersionSpecifier.parse("pymongo#v4.7.0")
        self.assertEqual(spec.kind, GIT)
        self.assertEqual(spec.ref, "v4.7.0")

    def test_git_commit(self) -> None:
        spec = VersionSpecifier.parse("pymongo#3a1b2c4d")
        self.assertEqual(spec.ref, "3a1b2c4d")

    def test_local_path(self) -> None:
        spec = VersionSpecifier.parse("bson:/src/py-bson")
        self.assertEqual(spec.kind, LOCAL)
        self.assertEqual(spec.path, "/src/py-bson")

    def test_bad_version_is_not_registry(self) -> None:
        with self.assertRaises(InvalidSpecifier):
            VersionSpecifier.parse("pymongo@4.6.0.1")

    def test_unknown_package(self) -> None:
        for text in ("requests@2.31.0", "bson-ext@1.0.0", "foo#main", "bar:/tmp/x"):
            with self.subTest(text=text), self.assertRaises(InvalidSpecifier) as ctx:
                VersionSpecifier.parse(text)
            self.assertIn("unknown package specifier", str(ctx.exception))

    def test_no_grammar_matches(self) -> None:
        for text in ("pymongo", "pymongo@", "pymongo#", "pymongo:", ""):
            with self.subTest(text=text), self.assertRaises(InvalidSpecifier):
                VersionSpecifier.parse(text)

    def test_frozen(self) -> None:
        spec = VersionSpecifier.parse("pymongo@4.6.0")
        with self.assertRaises(AttributeError):
            spec.version = "5.0.0"  # type: ignore[misc]

    def test_str_round_trips(self) -> None:
        for text in ("pymongo@4.6.0", "pymongo#v4.7.0", "bson:/src/py-bson"):
            with self.subTest(text=text):
                self.assertEqual(str(VersionSpecifier.parse(text)), text)


class TestInstalledModuleName(unittest.TestCase):
    def test_registry(self) -> None:
        self.assertEqual(VersionSpecifier.parse("pymongo@4.6.0").installed_module_name, "pymongo-4.6.0")

    def test_git(self) -> None:
        self.assertEqual(
            VersionSpecifier.parse("pymongo#v4.7.0").installed_module_name, "pymongo-git-v4.7.0"
        )

    def test_git_ref_with_slash(self) -> None:
        name = VersionSpecifier.parse("pymongo#release/4.7").installed_module_name
        self.assertEqual(name, "pymongo-git-release_4.7")

    def test_local_path_is_sanitized(self) -> None:
        name = VersionSpecifier.parse("bson:/src/py-bson").installed_module_name
        self.assertEqual(name, "bson-local-_src_py-bson")
        self.assertNotIn("/", name)

    def test_windows_separators_sanitized(self) -> None:
        name = VersionSpecifier.parse("bson:C:\\src\\py-bson").installed_module_name
        self.assertNotIn("\\", name)

    def test_distinct_references_distinct_names(self) -> None:
        names = {
            VersionSpecifier.parse(text).installed_module_name
            for text in ("pymongo@4.6.0", "pymongo@4.6", "pymongo#4.6.0", "bson@4.6.0")
        }
        self.assertEqual(len(names), 4)


class TestPipSource(unittest.TestCase):
    def test_full_version_pinned(self) -> None:
        self.assertEqual(VersionSpecifier.parse("pymongo@4.6.0").pip_source(), "pymongo==4.6.0")

    def test_partial_versions_use_wildcards(self) -> None:
        self.assertEqual(VersionSpecifier.parse("pymongo@4").pip_source(), "pymongo==4.*")
        self.assertEqual(VersionSpecifier.parse("pymongo@4.6").pip_source(), "pymongo==4.6.*")

    def test_latest_unpinned(self) -> None:
        self.assertEqual(VersionSpecifier.parse("bson@latest").pip_source(), "bson")

    def test_git_uses_upstream(self) -> None:
        self.assertEqual(
            VersionSpecifier.parse("pymongo#v4.7.0").pip_source(),
            "git+https://github.com/mongodb/mongo-python-driver@v4.7.0",
        )
        self.assertEqual(
            VersionSpecifier.parse("bson#master").pip_source(),
            "git+https://github.com/py-bson/bson@master",
        )

    def test_local_is_the_path(self) -> None:
        self.assertEqual(
            VersionSpecifier.parse("bson:/src/py-bson").pip_source(), str(Path("/src/py-bson").resolve())
        )

    def test_relative_local_path_is_absolute(self) -> None:
        source = VersionSpecifier.parse("bson:py-bson").pip_source()
        self.assertTrue(Path(source).is_absolute())
        self.assertEqual(Path(source), Path.cwd().resolve() / "py-bson")


class TestLibrary(unittest.TestCase):
    def test_both_import_as_bson(self) -> None:
        self.assertEqual(VersionSpecifier.parse("pymongo@4.6.0").library.import_name, "bson")
        self.assertEqual(VersionSpecifier.parse("bson@0.5.10").library.import_name, "bson")


if __name__ == "__main__":
    unittest.main()
