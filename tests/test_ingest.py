"""
Tests for report ingestion.
"""

import copy

import pytest
from sqlalchemy.exc import OperationalError
from structlog.testing import capture_logs

from pipeline_dashboard.db.models import ConfigSourceModel, PipelineReportModel, SCMModel
from pipeline_dashboard.errors import StorageError, ValidationError
from pipeline_dashboard.pipeline.catalog import CatalogService
from pipeline_dashboard.pipeline.ingest import ReportIngestor
from pipeline_dashboard.pipeline.scm import SCMService
from tests.helpers import make_report, make_scm_target, make_step

GIT_URL = "https://example/git"


def _stored(db_session, report_id) -> PipelineReportModel:
    return db_session.query(PipelineReportModel).filter(PipelineReportModel.id == report_id).one()


class TestScmResolution:
    def test_new_repository_is_registered(self, db_session):
        """A target pointing at an unknown repository creates one registry entry."""
        report = make_report(
            report_id="p1",
            pipeline_id="pipe-1",
            targets={"t1": make_scm_target(GIT_URL, target="main", source="main")},
        )
        report_id = ReportIngestor(db_session).ingest(report)

        scms = db_session.query(SCMModel).all()
        assert len(scms) == 1
        assert (scms[0].url, scms[0].branch) == (GIT_URL, "main")
        assert _stored(db_session, report_id).scm_ids == [scms[0].id]

    def test_reingesting_reuses_the_registry(self, db_session):
        report = make_report(
            report_id="p1",
            pipeline_id="pipe-1",
            targets={"t1": make_scm_target(GIT_URL, target="main", source="main")},
        )
        ingestor = ReportIngestor(db_session)
        first = ingestor.ingest(copy.deepcopy(report))
        second = ingestor.ingest(copy.deepcopy(report))

        assert db_session.query(SCMModel).count() == 1
        assert _stored(db_session, second).scm_ids == _stored(db_session, first).scm_ids
        assert len(_stored(db_session, second).scm_ids) == 1

    def test_target_branch_is_stored_by_default(self, db_session):
        report = make_report(targets={"t1": make_scm_target(GIT_URL, target="main", source="feature")})
        ReportIngestor(db_session).ingest(report)

        (scm,) = db_session.query(SCMModel).all()
        assert scm.branch == "main"

    def test_source_branch_can_be_stored(self, db_session):
        report = make_report(targets={"t1": make_scm_target(GIT_URL, target="main", source="feature")})
        ReportIngestor(db_session, store_source_branch=True).ingest(report)

        (scm,) = db_session.query(SCMModel).all()
        assert scm.branch == "feature"

    def test_targets_sharing_a_repository_add_one_id(self, db_session):
        report = make_report(
            targets={
                "t1": make_scm_target(GIT_URL, target="main"),
                "t2": make_scm_target(GIT_URL, target="main"),
            }
        )
        report_id = ReportIngestor(db_session).ingest(report)
        assert len(_stored(db_session, report_id).scm_ids) == 1

    def test_incomplete_references_are_ignored(self, db_session):
        report = make_report(
            targets={
                "no-branch": {"Scm": {"URL": GIT_URL, "Branch": {"Source": "main"}}},
                "no-url": {"Scm": {"Branch": {"Target": "main"}}},
                "null-scm": {"Scm": None},
            }
        )
        report_id = ReportIngestor(db_session).ingest(report)
        assert _stored(db_session, report_id).scm_ids == []
        assert db_session.query(SCMModel).count() == 0


class TestConfigAssociations:
    def test_mapping_records_step_names(self, db_session):
        report = make_report(
            sources={"latest": make_step(kind="githubrelease", spec={"owner": "updatecli"})},
            conditions={"exists": make_step(kind="file", spec={"file": "go.mod"})},
            targets={"bump": make_step(kind="yaml", spec={"key": "$.version"})},
        )
        report_id = ReportIngestor(db_session).ingest(report)
        stored = _stored(db_session, report_id)

        catalog = CatalogService(db_session)
        (source,) = catalog.search("source")[0]
        assert stored.source_config_ids == {source["id"]: "latest"}
        assert list(stored.condition_config_ids.values()) == ["exists"]
        assert list(stored.target_config_ids.values()) == ["bump"]

    def test_step_without_kind_is_skipped(self, db_session):
        """A config lacking its discriminator leaves no association behind."""
        report = make_report(
            sources={
                "tagged": make_step(kind="file", spec={"file": "a"}),
                "untagged": make_step(kind=None, spec={"file": "b"}),
                "no-config": {"Name": "bare"},
            }
        )
        report_id = ReportIngestor(db_session).ingest(report)

        stored = _stored(db_session, report_id)
        assert list(stored.source_config_ids.values()) == ["tagged"]
        assert db_session.query(ConfigSourceModel).count() == 1

    def test_same_config_across_reports_is_shared(self, db_session):
        step = make_step(kind="file", spec={"file": "a"})
        ingestor = ReportIngestor(db_session)
        first = ingestor.ingest(make_report(sources={"one": copy.deepcopy(step)}))
        second = ingestor.ingest(make_report(sources={"two": copy.deepcopy(step)}))

        assert set(_stored(db_session, first).source_config_ids) == set(_stored(db_session, second).source_config_ids)
        assert db_session.query(ConfigSourceModel).count() == 1

    def test_deleting_a_catalog_entry_keeps_the_report(self, db_session):
        report = make_report(sources={"latest": make_step(kind="file", spec={"file": "a"})})
        report_id = ReportIngestor(db_session).ingest(copy.deepcopy(report))
        stored = _stored(db_session, report_id)
        (resource_id,) = stored.source_config_ids

        CatalogService(db_session).delete("source", resource_id)
        db_session.expire_all()

        stored = _stored(db_session, report_id)
        assert stored.data == report
        assert resource_id in stored.source_config_ids


class TestStoredRow:
    def test_raw_document_is_preserved(self, db_session):
        report = make_report(report_id="run-9", pipeline_id="pipe-9", result="failure")
        report["Extra"] = {"nested": [1, 2, {"x": None}]}
        report_id = ReportIngestor(db_session).ingest(copy.deepcopy(report))

        stored = _stored(db_session, report_id)
        assert stored.data == report
        assert (stored.report_id, stored.pipeline_id, stored.result) == ("run-9", "pipe-9", "failure")

    def test_pipeline_id_falls_back_to_run_id(self, db_session):
        report_id = ReportIngestor(db_session).ingest(make_report(report_id="run-only"))
        assert _stored(db_session, report_id).pipeline_id == "run-only"

    def test_null_sections_are_accepted(self, db_session):
        report = {"ID": "r", "Name": "n", "Result": "success", "Sources": None, "Targets": None}
        report_id = ReportIngestor(db_session).ingest(report)
        assert _stored(db_session, report_id).source_config_ids == {}

    @pytest.mark.parametrize("report", [[], {"Sources": ["not", "a", "mapping"]}])
    def test_malformed_report(self, db_session, report):
        with pytest.raises(ValidationError):
            ReportIngestor(db_session).ingest(report)


class TestPartialFailures:
    def test_failed_config_intern_drops_only_that_step(self, db_session, monkeypatch):
        original = CatalogService.intern

        def intern(self, resource_type, kind, content):
            if kind == "broken":
                raise StorageError("config lookup failed")
            return original(self, resource_type, kind, content)

        monkeypatch.setattr(CatalogService, "intern", intern)
        report = make_report(
            sources={
                "good": make_step(kind="file", spec={"file": "a"}),
                "bad": make_step(kind="broken", spec={"file": "b"}),
            }
        )
        with capture_logs() as logs:
            report_id = ReportIngestor(db_session).ingest(report)

        stored = _stored(db_session, report_id)
        assert list(stored.source_config_ids.values()) == ["good"]
        failures = [entry for entry in logs if entry["event"] == "config_intern_failed"]
        assert len(failures) == 1
        assert failures[0]["step"] == "bad"

    def test_failed_scm_lookup_drops_only_that_target(self, db_session, monkeypatch):
        original = SCMService.find

        def find(self, url, branch):
            if url == "https://example/broken":
                raise StorageError("scm lookup failed")
            return original(self, url, branch)

        monkeypatch.setattr(SCMService, "find", find)
        report = make_report(
            targets={
                "ok": make_scm_target(GIT_URL, target="main"),
                "broken": make_scm_target("https://example/broken", target="main"),
            }
        )
        with capture_logs() as logs:
            report_id = ReportIngestor(db_session).ingest(report)

        (scm,) = db_session.query(SCMModel).all()
        assert scm.url == GIT_URL
        assert _stored(db_session, report_id).scm_ids == [scm.id]
        assert [entry["step"] for entry in logs if entry["event"] == "scm_resolve_failed"] == ["broken"]

    def test_failed_report_insert_raises_and_stores_nothing(self, db_session, monkeypatch):
        def commit():
            raise OperationalError("INSERT INTO pipeline_reports", {}, Exception("disk full"))

        monkeypatch.setattr(db_session, "commit", commit)
        with pytest.raises(StorageError):
            ReportIngestor(db_session).ingest(make_report(report_id="doomed"))

        monkeypatch.undo()
        assert db_session.query(PipelineReportModel).count() == 0
