"""Tests for the batch runner."""

import asyncio
import json

import pytest

from commentary_enricher.chains.commentary import CommentaryFormatDriver
from commentary_enricher.chains.keywords import KeywordNavigationDriver
from commentary_enricher.models import ConfigurationError, RecordStatus
from commentary_enricher.runner import DRIVERS, build_driver, outcome_counts, run_batch, run_driver
from fixtures.doubles import RecordingSleep, ScriptedClient
from fixtures.records import get_formatted_response, sample_record_data, write_record


def write_chapters(content_root, count):
    return [
        write_record(content_root, sample_record_data(chapter_number=f"{number:02d}"))
        for number in range(1, count + 1)
    ]


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_one_bad_response_does_not_stop_the_batch(self, settings, content_root):
        paths = write_chapters(content_root, 5)
        responses = [get_formatted_response()] * 2 + ["{truncated"] + [get_formatted_response()] * 2
        driver = CommentaryFormatDriver(ScriptedClient(responses), settings)

        summary = await run_batch(paths, driver)

        assert summary.processed == 5
        assert summary.succeeded == 4
        assert summary.failed == 1
        assert summary.outcomes[2].status == RecordStatus.FAILED
        assert summary.outcomes[2].path == str(paths[2])
        assert json.loads(paths[2].read_text(encoding="utf-8"))["title"] == "The Lion Roars from Zion"

    @pytest.mark.asyncio
    async def test_one_bad_file_does_not_stop_the_batch(self, settings, content_root):
        paths = write_chapters(content_root, 5)
        paths[2].write_text("{not json", encoding="utf-8")
        driver = CommentaryFormatDriver(ScriptedClient(default=get_formatted_response()), settings)

        summary = await run_batch(paths, driver)

        assert (summary.succeeded, summary.failed) == (4, 1)
        assert summary.outcomes[2].error_type == "ParseError"

    @pytest.mark.asyncio
    async def test_delay_between_records(self, settings, content_root):
        paths = write_chapters(content_root, 3)
        sleep = RecordingSleep()
        driver = CommentaryFormatDriver(ScriptedClient(default=get_formatted_response()), settings)

        await run_batch(paths, driver, inter_call_delay=5.0, sleep=sleep)

        assert sleep.delays == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self, settings, content_root):
        paths = write_chapters(content_root, 6)
        in_flight = 0
        peak = 0

        class SlowClient(ScriptedClient):
            async def generate(self, prompt, json_mode=False):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return await super().generate(prompt, json_mode)

        client = SlowClient(default=get_formatted_response())
        summary = await run_batch(paths, CommentaryFormatDriver(client, settings), concurrency=2)

        assert summary.succeeded == 6
        assert len(client.prompts) == 6
        assert peak == 2
        assert [outcome.path for outcome in summary.outcomes] == [str(path) for path in paths]

    @pytest.mark.asyncio
    async def test_prepare_runs_before_any_record(self, settings, content_root):
        paths = write_chapters(content_root, 3)
        for path in paths:
            data = json.loads(path.read_text(encoding="utf-8"))
            data["keywords"] = ["Zion"]
            path.write_text(json.dumps(data), encoding="utf-8")

        summary = await run_batch(paths, KeywordNavigationDriver(ScriptedClient(), settings), concurrency=3)

        assert summary.succeeded == 3
        nexts = [json.loads(path.read_text(encoding="utf-8"))["next_chapter"] for path in paths]
        assert nexts == ["amos-02", "amos-03", None]

    @pytest.mark.asyncio
    async def test_run_log(self, settings, content_root, tmp_path):
        paths = write_chapters(content_root, 2)
        log_path = tmp_path / "run.jsonl"
        driver = CommentaryFormatDriver(ScriptedClient(["oops", get_formatted_response()]), settings)

        await run_batch(paths, driver, log_path=log_path)

        entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        assert [entry["action"] for entry in entries] == [
            "commentary_record",
            "commentary_record",
            "commentary_batch_completed",
        ]
        assert entries[0]["status"] == "failed"
        assert entries[2]["updated"] == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self, settings):
        summary = await run_batch([], CommentaryFormatDriver(ScriptedClient(), settings))
        assert summary.processed == 0


class TestRunDriver:
    @pytest.mark.asyncio
    async def test_single_target(self, settings, content_root):
        paths = write_chapters(content_root, 3)
        client = ScriptedClient([get_formatted_response()])

        summary = await run_driver("commentary", "amos_02.json", config=settings, client=client)

        assert summary.processed == 1
        assert summary.outcomes[0].path == str(paths[1])
        assert (content_root / "en" / "enrichment_log.jsonl").exists()

    @pytest.mark.asyncio
    async def test_whole_corpus(self, settings, content_root):
        write_chapters(content_root, 3)
        client = ScriptedClient(default=get_formatted_response())

        summary = await run_driver("commentary", config=settings, client=client)

        assert outcome_counts(summary) == {"processed": 3, "updated": 3, "skipped": 0, "failed": 0}

    def test_missing_api_key(self, settings):
        config = settings.model_copy(update={"openrouter_api_key": None})
        with pytest.raises(ConfigurationError):
            build_driver("commentary", config)

    def test_missing_content_root(self, settings, tmp_path):
        config = settings.model_copy(update={"content_root": tmp_path / "nowhere"})
        with pytest.raises(ConfigurationError):
            build_driver("seo", config, client=ScriptedClient())

    def test_missing_introductions_dir(self, settings, tmp_path):
        config = settings.model_copy(update={"introductions_dir": tmp_path / "nowhere"})
        with pytest.raises(ConfigurationError):
            build_driver("introductions", config, client=ScriptedClient())

    def test_unknown_driver(self, settings):
        with pytest.raises(ConfigurationError):
            build_driver("translate", settings)

    def test_real_client_built_from_settings(self, settings):
        driver = build_driver("keywords", settings)

        assert driver.client.current_model == settings.primary_model
        assert driver.client.retry_policy.base_delay == 2.0

    def test_registry(self):
        assert sorted(DRIVERS) == ["commentary", "introductions", "keywords", "normalize", "seo"]
