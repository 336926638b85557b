"""Tests for building, rewriting and merging Composer documents."""

from __future__ import annotations

import copy
import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from composer_repo.domain.composer_json import compute_uid, format_time
from composer_repo.domain.exceptions import ExtractionFailure, MalformedName, NotFound, TypeMismatch

BASE_URL = "http://localhost:8000/repository/composer-proxy"


def widget_provider():
    return {
        "packages": {
            "acme/widget": {
                "1.0.0": {
                    "name": "acme/widget",
                    "version": "1.0.0",
                    "source": {"type": "git", "url": "https://github.com/acme/widget.git", "reference": "abc"},
                    "dist": {
                        "type": "zip",
                        "url": "https://api.github.com/repos/acme/widget/zipball/abc",
                        "reference": "abc",
                        "shasum": "",
                    },
                    "require": {"php": ">=7.2"},
                },
                "dev-main": {
                    "name": "acme/widget",
                    "version": "dev-main",
                    "dist": {"type": "tar", "url": "https://example.org/widget.tar", "reference": "def", "shasum": None},
                },
                "2.0.0": {
                    "name": "acme/widget",
                    "version": "2.0.0",
                    "source": {"type": "git", "url": "https://github.com/acme/widget.git", "reference": "ghi"},
                },
            }
        }
    }


class TestRecordBuilders:
    def test_format_time_renders_utc_with_offset(self):
        assert format_time(datetime(2020, 1, 2, 3, 4, 5, 678, tzinfo=timezone.utc)) == "2020-01-02T03:04:05+00:00"
        assert format_time(datetime(2020, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2)))) == "2020-01-02T03:04:05+00:00"
        assert format_time(datetime(2020, 1, 2, 3, 4, 5)) == "2020-01-02T03:04:05+00:00"

    def test_uid_is_first_four_md5_bytes_little_endian(self):
        time = "2020-01-01T00:00:00+00:00"
        digest = hashlib.md5(f"acme/widget1.0.0{time}".encode("utf-8")).digest()
        assert compute_uid("acme/widget", "1.0.0", time) == int.from_bytes(digest[:4], "little")

    def test_uid_is_stable_and_depends_on_each_input(self):
        time = "2020-01-01T00:00:00+00:00"
        uid = compute_uid("acme/widget", "1.0.0", time)
        assert uid == compute_uid("acme/widget", "1.0.0", time)
        assert 0 <= uid < 2 ** 32
        assert uid != compute_uid("acme/gadget", "1.0.0", time)
        assert uid != compute_uid("acme/widget", "1.0.1", time)
        assert uid != compute_uid("acme/widget", "1.0.0", "2020-01-01T00:00:01+00:00")

    def test_build_dist_info(self, processor, repository):
        dist = processor.build_dist_info(repository, "acme/widget", "1.2.0", "ref", "sum", "zip")
        assert dist == {
            "url": f"{BASE_URL}/acme/widget/1.2.0/acme-widget-1.2.0.zip",
            "type": "zip",
            "reference": "ref",
            "shasum": "sum",
        }

    @pytest.mark.parametrize("name", ["widget", "acme/widget/extra"])
    def test_build_dist_info_rejects_malformed_names(self, processor, repository, name):
        with pytest.raises(MalformedName):
            processor.build_dist_info(repository, name, "1.0.0", None, None, "zip")

    def test_build_package_info_copies_only_allowed_fields(self, processor, repository):
        source = {
            "name": "Other/Name",
            "version": "9.9.9",
            "uid": 1,
            "time": "1999-01-01T00:00:00+00:00",
            "dist": {"url": "https://example.org/x.zip"},
            "source": {"url": "https://github.com/acme/widget.git"},
            "description": "A widget",
            "require": {"php": ">=8.1"},
            "unknown-key": True,
        }
        time = "2020-01-01T00:00:00+00:00"
        info = processor.build_package_info(repository, "acme/widget", "1.0.0", "r", "s", "zip", time, source)

        assert list(info) == ["name", "version", "dist", "time", "uid", "description", "require"]
        assert info["name"] == "acme/widget"
        assert info["version"] == "1.0.0"
        assert info["dist"]["url"].startswith(BASE_URL)
        assert info["time"] == time
        assert info["uid"] == compute_uid("acme/widget", "1.0.0", time)
        assert info["description"] == "A widget"


class TestPackagesDocuments:
    def test_build_packages_document(self, processor, repository):
        document = processor.build_packages_document(repository, ["b/b", "a/a", "b/b"])
        assert document == {
            "providers-url": f"{BASE_URL}/p/%package%.json",
            "providers": {"b/b": {"sha256": None}, "a/a": {"sha256": None}},
        }
        assert list(document["providers"]) == ["b/b", "a/a"]

    def test_build_packages_from_list(self, processor, repository):
        document = processor.build_packages_from_list(repository, {"packageNames": ["acme/widget", "acme/gadget"]})
        assert list(document["providers"]) == ["acme/widget", "acme/gadget"]

    @pytest.mark.parametrize("list_document", [{}, {"packageNames": {"a/a": 1}}, {"packageNames": ["a/a", 3]}])
    def test_build_packages_from_list_rejects_bad_shapes(self, processor, repository, list_document):
        with pytest.raises(TypeMismatch):
            processor.build_packages_from_list(repository, list_document)

    def test_merge_packages_documents_unions_providers(self, processor, repository):
        documents = [
            {"providers-url": "https://elsewhere/p/%package%.json", "providers": {"a/a": {"sha256": "x"}, "b/b": {}}},
            {"providers": {"b/b": {"sha256": None}, "c/c": {"sha256": None}}},
            {"notify": "/downloads/"},
        ]
        merged = processor.merge_packages_documents(repository, documents)

        assert merged["providers-url"] == f"{BASE_URL}/p/%package%.json"
        assert list(merged["providers"]) == ["a/a", "b/b", "c/c"]
        assert all(entry == {"sha256": None} for entry in merged["providers"].values())

    def test_merge_packages_documents_rejects_non_mapping_providers(self, processor, repository):
        with pytest.raises(TypeMismatch):
            processor.merge_packages_documents(repository, [{"providers": ["a/a"]}])


class TestRewriteProvider:
    def test_removes_sources_and_rewrites_zip_dists(self, processor, repository):
        document = processor.rewrite_provider_document(repository, widget_provider())
        versions = document["packages"]["acme/widget"]

        assert all("source" not in info for info in versions.values())
        assert versions["1.0.0"]["dist"] == {
            "url": f"{BASE_URL}/acme/widget/1.0.0/acme-widget-1.0.0.zip",
            "type": "zip",
            "reference": "abc",
            "shasum": "",
        }
        assert versions["1.0.0"]["require"] == {"php": ">=7.2"}

    def test_leaves_other_dist_types_untouched(self, processor, repository):
        document = processor.rewrite_provider_document(repository, widget_provider())
        assert document["packages"]["acme/widget"]["dev-main"]["dist"] == {
            "type": "tar",
            "url": "https://example.org/widget.tar",
            "reference": "def",
            "shasum": None,
        }
        assert "dist" not in document["packages"]["acme/widget"]["2.0.0"]

    def test_rewrite_is_idempotent(self, processor, repository):
        once = processor.rewrite_provider_document(repository, widget_provider())
        twice = processor.rewrite_provider_document(repository, copy.deepcopy(once))
        assert twice == once

    def test_rewrite_payload_round_trips_through_codec(self, processor, repository):
        payload = b'{"packages":{"acme/widget":{"1.0.0":{"source":{},"dist":{"type":"zip","reference":"r","shasum":"s"}}}}}'
        rewritten = processor.rewrite_provider_payload(repository, payload)
        assert rewritten == (
            b'{"packages":{"acme/widget":{"1.0.0":{"dist":{"url":"' + BASE_URL.encode()
            + b'/acme/widget/1.0.0/acme-widget-1.0.0.zip","type":"zip","reference":"r","shasum":"s"}}}}}'
        )

    def test_tolerates_missing_structure(self, processor, repository):
        assert processor.rewrite_provider_document(repository, {"other": 1}) == {"other": 1}
        assert processor.rewrite_provider_document(repository, {"packages": []}) == {"packages": []}
        document = {"packages": {"acme/widget": {"1.0.0": {"dist": None}}}}
        assert processor.rewrite_provider_document(repository, document) == document

    @pytest.mark.parametrize(
        "document",
        [
            {"packages": "acme/widget"},
            {"packages": {"acme/widget": ["1.0.0"]}},
            {"packages": {"acme/widget": {"1.0.0": "zip"}}},
            {"packages": {"acme/widget": {"1.0.0": {"dist": "https://example.org/widget.zip"}}}},
            {"packages": {"acme/widget": {"1.0.0": {"dist": {"type": "zip", "reference": 12}}}}},
        ],
    )
    def test_wrong_shapes_raise_type_mismatch(self, processor, repository, document):
        with pytest.raises(TypeMismatch):
            processor.rewrite_provider_document(repository, document)

    def test_malformed_package_name_with_zip_dist(self, processor, repository):
        with pytest.raises(MalformedName):
            processor.rewrite_provider_document(
                repository, {"packages": {"widget": {"1.0.0": {"dist": {"type": "zip"}}}}}
            )


class TestMergeProviders:
    NOW = datetime(2021, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_first_document_wins_per_version(self, processor, repository):
        first = {
            "packages": {
                "acme/widget": {
                    "1.0.0": {
                        "dist": {"type": "zip", "url": "X", "reference": "r1", "shasum": "s1"},
                        "time": "2020-01-01T00:00:00+00:00",
                        "source": {"url": "https://github.com/acme/widget.git"},
                        "description": "first",
                        "foo": "bar",
                    },
                    "2.0.0": {"version": "2.0.0"},
                }
            }
        }
        second = {
            "packages": {
                "acme/widget": {
                    "1.0.0": {"dist": {"type": "zip", "url": "Y", "reference": "r2", "shasum": "s2"}},
                    "2.0.0": {"dist": {"type": "zip", "url": "Z", "reference": "r3", "shasum": None}},
                }
            }
        }
        merged = processor.merge_provider_documents(repository, [first, second], self.NOW)
        versions = merged["packages"]["acme/widget"]

        assert list(versions) == ["1.0.0", "2.0.0"]
        assert versions["1.0.0"]["dist"]["reference"] == "r1"
        assert versions["1.0.0"]["dist"]["url"] == f"{BASE_URL}/acme/widget/1.0.0/acme-widget-1.0.0.zip"
        assert versions["1.0.0"]["time"] == "2020-01-01T00:00:00+00:00"
        assert versions["1.0.0"]["description"] == "first"
        assert "source" not in versions["1.0.0"]
        assert "foo" not in versions["1.0.0"]

        assert versions["2.0.0"]["dist"]["reference"] == "r3"
        assert versions["2.0.0"]["time"] == "2021-06-01T12:00:00+00:00"
        assert versions["2.0.0"]["uid"] == compute_uid("acme/widget", "2.0.0", "2021-06-01T12:00:00+00:00")

    def test_keeps_dist_type_but_points_url_at_repository(self, processor, repository):
        document = {"packages": {"acme/widget": {"1.0.0": {"dist": {"type": "tar", "url": "https://example.org/w.tar"}}}}}
        merged = processor.merge_provider_documents(repository, [document], self.NOW)
        dist = merged["packages"]["acme/widget"]["1.0.0"]["dist"]
        assert dist["type"] == "tar"
        assert dist["url"].startswith(BASE_URL)

    def test_skips_documents_without_packages(self, processor, repository):
        merged = processor.merge_provider_documents(repository, [{}, {"packages": None}], self.NOW)
        assert merged == {"packages": {}}

    def test_package_without_any_dist_is_omitted(self, processor, repository):
        merged = processor.merge_provider_documents(
            repository, [{"packages": {"acme/widget": {"1.0.0": {"version": "1.0.0"}}}}], self.NOW
        )
        assert merged == {"packages": {}}


class TestBuildProvider:
    UPDATED = datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def _add(self, store, zip_factory, vendor, project, version, manifest):
        component = store.add_component("composer-hosted", vendor, project, version, zip_factory(manifest))
        return component.model_copy(update={"last_updated": self.UPDATED})

    def test_synthesizes_release_from_component(self, processor, repository, store, zip_factory):
        component = self._add(
            store, zip_factory, "acme", "widget", "1.2.0",
            {"name": "acme/widget", "description": "A widget", "require": {"php": ">=8.1"}, "repositories": []},
        )
        document = processor.build_provider_document(repository, [component], store)
        record = document["packages"]["acme/widget"]["1.2.0"]

        assert record["name"] == "acme/widget"
        assert record["version"] == "1.2.0"
        assert record["dist"]["reference"] == component.checksum
        assert record["dist"]["shasum"] == component.checksum
        assert record["dist"]["type"] == "zip"
        assert record["dist"]["url"] == f"{BASE_URL}/acme/widget/1.2.0/acme-widget-1.2.0.zip"
        assert record["time"] == "2020-01-02T03:04:05+00:00"
        assert record["uid"] == compute_uid("acme/widget", "1.2.0", "2020-01-02T03:04:05+00:00")
        assert record["description"] == "A widget"
        assert record["require"] == {"php": ">=8.1"}
        assert "repositories" not in record

    def test_groups_versions_by_package(self, processor, repository, store, zip_factory):
        components = [
            self._add(store, zip_factory, "acme", "widget", "1.0.0", {}),
            self._add(store, zip_factory, "acme", "gadget", "0.1.0", {}),
            self._add(store, zip_factory, "acme", "widget", "1.2.0", {}),
        ]
        document = processor.build_provider_document(repository, components, store)

        assert list(document["packages"]) == ["acme/widget", "acme/gadget"]
        assert list(document["packages"]["acme/widget"]) == ["1.0.0", "1.2.0"]

    def test_later_component_with_same_version_wins(self, processor, repository, store, zip_factory):
        older = store.add_component("older-hosted", "acme", "widget", "1.0.0", zip_factory({"description": "old"}))
        newer = self._add(store, zip_factory, "acme", "widget", "1.0.0", {"description": "new"})
        assert older.blob_ref != newer.blob_ref
        assert older.checksum != newer.checksum

        document = processor.build_provider_document(repository, [older, newer], store)
        versions = document["packages"]["acme/widget"]

        assert list(versions) == ["1.0.0"]
        assert versions["1.0.0"]["dist"]["reference"] == newer.checksum
        assert versions["1.0.0"]["dist"]["shasum"] == newer.checksum
        assert versions["1.0.0"]["description"] == "new"

    def test_unreadable_archive_aborts_document(self, processor, repository, store, zip_factory):
        good = self._add(store, zip_factory, "acme", "widget", "1.0.0", {})
        bad = self._add(store, zip_factory, "acme", "widget", "1.1.0", None)
        with pytest.raises(ExtractionFailure):
            processor.build_provider_document(repository, [good, bad], store)


class TestGetDistUrl:
    def test_returns_stored_url(self, processor, repository):
        document = processor.rewrite_provider_document(repository, widget_provider())
        assert processor.get_dist_url(document, "acme", "widget", "1.0.0") == (
            f"{BASE_URL}/acme/widget/1.0.0/acme-widget-1.0.0.zip"
        )
        assert processor.get_dist_url(document, "acme", "widget", "dev-main") == "https://example.org/widget.tar"

    @pytest.mark.parametrize(
        "vendor, project, version",
        [("acme", "gadget", "1.0.0"), ("acme", "widget", "9.9.9"), ("acme", "widget", "2.0.0")],
    )
    def test_missing_entries_raise_not_found(self, processor, vendor, project, version):
        with pytest.raises(NotFound):
            processor.get_dist_url(widget_provider(), vendor, project, version)

    def test_document_without_packages(self, processor):
        with pytest.raises(NotFound):
            processor.get_dist_url({}, "acme", "widget", "1.0.0")

    def test_dist_without_url(self, processor):
        document = {"packages": {"acme/widget": {"1.0.0": {"dist": {"type": "zip"}}}}}
        with pytest.raises(NotFound):
            processor.get_dist_url(document, "acme", "widget", "1.0.0")
