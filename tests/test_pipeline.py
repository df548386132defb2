"""Tests for core/pipeline.py and the end-to-end shell."""

import json

from PIL import Image

from conftest import FakeRenderer, make_image
from core.pipeline import BatchRunner
from core.progress import ProgressStore
from iop.watermark import TextWatermark
from watermark_pipeline import WatermarkPipeline


def _no_overlap(state):
    ids = state.pending + state.done + state.errored + ([state.in_progress] if state.in_progress else [])
    return len(ids) == len(set(ids))


class TestBatchRunner:
    def test_processes_tail_first(self, spec, store, source_dir):
        for name in ("a.jpg", "b.jpg", "c.jpg"):
            make_image(source_dir / name)
        store.initialize_if_empty(["a.jpg", "b.jpg", "c.jpg"])
        renderer = FakeRenderer()

        report = BatchRunner(spec, store, renderer, show_progress=False).run()

        assert [name for name, _ in renderer.rendered] == ["c.jpg", "b.jpg", "a.jpg"]
        assert report.done == ["c.jpg", "b.jpg", "a.jpg"]
        assert report.processed == 3
        assert store.state.pending == []

    def test_missing_source_is_errored(self, spec, store, source_dir, capsys):
        make_image(source_dir / "a.jpg")
        store.initialize_if_empty(["a.jpg", "b.jpg"])
        renderer = FakeRenderer()

        report = BatchRunner(spec, store, renderer, show_progress=False).run()

        assert report.done == ["a.jpg"]
        assert report.errored == ["b.jpg"]
        assert [name for name, _ in renderer.rendered] == ["a.jpg"]
        assert "doesn't exist" in capsys.readouterr().out

    def test_render_failure_is_errored_and_batch_continues(self, spec, store, source_dir):
        for name in ("a.jpg", "b.jpg"):
            make_image(source_dir / name)
        store.initialize_if_empty(["a.jpg", "b.jpg"])

        report = BatchRunner(spec, store, FakeRenderer(fail_on={"b.jpg"}), show_progress=False).run()

        state = ProgressStore(store.log_path).load()
        assert state.done == ["a.jpg"]
        assert state.errored == ["b.jpg"]
        assert state.in_progress == ""
        assert report.processed == 1
        assert _no_overlap(state)

    def test_reports_percentage(self, spec, store, source_dir, capsys):
        for name in ("a.jpg", "b.jpg"):
            make_image(source_dir / name)
        store.initialize_if_empty(["a.jpg", "b.jpg"])

        BatchRunner(spec, store, FakeRenderer(), show_progress=False).run()

        out = capsys.readouterr().out
        assert "b.jpg processed" in out
        assert "50% complete" in out
        assert "100% complete" in out

    def test_placement_uses_probed_size(self, spec, store, source_dir):
        make_image(source_dir / "a.jpg")
        store.initialize_if_empty(["a.jpg"])
        renderer = FakeRenderer()

        BatchRunner(spec, store, renderer, show_progress=False).run()

        _, placement = renderer.rendered[0]
        # centred 40px wide text on a 200px wide image
        assert placement.x == 80
        assert placement.font == "40px DejaVuSans"

    def test_oversized_image_is_errored_and_batch_continues(self, spec, store, source_dir, monkeypatch):
        make_image(source_dir / "a.jpg", size=(50, 50))
        make_image(source_dir / "big.jpg", size=(200, 100))
        # Pillow refuses images above twice this many pixels
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 5000)
        store.initialize_if_empty(["a.jpg", "big.jpg"])

        report = BatchRunner(spec, store, TextWatermark(), show_progress=False).run()

        state = ProgressStore(store.log_path).load()
        assert state.errored == ["big.jpg"]
        assert state.done == ["a.jpg"]
        assert state.in_progress == ""
        assert state.pending == []
        assert report.processed == 1

    def test_nothing_pending(self, spec, store):
        report = BatchRunner(spec, store, FakeRenderer(), show_progress=False).run()
        assert report.processed == 0
        assert report.done == []


class TestEndToEnd:
    def test_one_present_one_missing(self, spec, store, source_dir, destination_dir):
        make_image(source_dir / "a.jpg")
        store.override_file_list(["a.jpg", "b.jpg"])
        store.load()

        BatchRunner(spec, store, TextWatermark(), show_progress=False).run()

        state = ProgressStore(store.log_path).load()
        assert state.done == ["a.jpg"]
        assert state.errored == ["b.jpg"]
        assert state.pending == []
        assert (destination_dir / "a.jpg").exists()
        assert not (destination_dir / "b.jpg").exists()

        with Image.open(destination_dir / "a.jpg") as im:
            assert im.size == (200, 100)
            # white text on a black image
            assert max(im.convert("L").getdata()) > 200

    def test_corrupt_image_is_errored(self, spec, store, source_dir, destination_dir):
        make_image(source_dir / "a.jpg")
        (source_dir / "broken.jpg").write_bytes(b"not an image")
        store.initialize_if_empty(["a.jpg", "broken.jpg"])

        report = BatchRunner(spec, store, TextWatermark(), show_progress=False).run()

        assert report.done == ["a.jpg"]
        assert report.errored == ["broken.jpg"]


class TestWatermarkPipeline:
    def test_full_run_from_directory_listing(self, write_config, tmp_path, source_dir, destination_dir, capsys):
        for name in ("a.jpg", "b.jpg"):
            make_image(source_dir / name)
        log = tmp_path / "logs.json"

        report = WatermarkPipeline(write_config(), log, prompt=False).run()

        assert sorted(report.done) == ["a.jpg", "b.jpg"]
        assert report.batch_count == 1
        assert (destination_dir / "a.jpg").exists()
        assert (destination_dir / "b.jpg").exists()
        out = capsys.readouterr().out
        assert "Batches taken: 1" in out
        assert "Items processed: 2" in out

    def test_second_run_has_nothing_to_do(self, write_config, tmp_path, source_dir, capsys):
        make_image(source_dir / "a.jpg")
        log = tmp_path / "logs.json"
        config = write_config()
        WatermarkPipeline(config, log, prompt=False).run()
        capsys.readouterr()

        assert WatermarkPipeline(config, log, prompt=False).run() is None
        assert "No Files to Process" in capsys.readouterr().out

    def test_reset_reprocesses(self, write_config, tmp_path, source_dir):
        make_image(source_dir / "a.jpg")
        log = tmp_path / "logs.json"
        config = write_config()
        WatermarkPipeline(config, log, prompt=False).run()

        report = WatermarkPipeline(config, log, prompt=False).run(reset=True)

        assert report.done == ["a.jpg"]
        assert report.batch_count == 1

    def test_resumes_after_crash(self, write_config, tmp_path, source_dir, capsys):
        for name in ("f1.jpg", "f2.jpg", "f3.jpg"):
            make_image(source_dir / name)
        log = tmp_path / "logs.json"
        log.write_text(json.dumps({
            "batch_count": 1,
            "pending": ["f2.jpg", "f3.jpg"],
            "in_progress": "f1.jpg",
            "done": [],
            "errored": [],
        }), encoding="utf-8")

        report = WatermarkPipeline(write_config(), log, prompt=False).run()

        assert report.errored == ["f1.jpg"]
        assert report.done == ["f3.jpg", "f2.jpg"]
        assert report.batch_count == 2
        out = capsys.readouterr().out
        assert "ERROR: File f1.jpg was skipped, please check manually" in out

    def test_override_files(self, write_config, tmp_path, source_dir, destination_dir):
        for name in ("a.jpg", "b.jpg"):
            make_image(source_dir / name)
        log = tmp_path / "logs.json"

        report = WatermarkPipeline(
            write_config(override_files=True, files=["b"]), log, prompt=False
        ).run()

        assert report.done == ["b.jpg"]
        assert not (destination_dir / "a.jpg").exists()

    def test_prompts_when_errors(self, write_config, tmp_path, source_dir, monkeypatch):
        log = tmp_path / "logs.json"
        prompts = []
        monkeypatch.setattr("builtins.input", lambda msg="": prompts.append(msg) or "")

        report = WatermarkPipeline(
            write_config(override_files=True, files=["ghost.jpg"]), log, prompt=True
        ).run()

        assert report.errored == ["ghost.jpg"]
        assert len(prompts) == 1

    def test_missing_source_directory(self, write_config, tmp_path, capsys):
        log = tmp_path / "logs.json"

        report = WatermarkPipeline(write_config({"source_directory": "nowhere"}), log, prompt=False).run()

        assert report is None
        out = capsys.readouterr().out
        assert "Source directory" in out and "not found" in out
        assert "No Files to Process" in out
