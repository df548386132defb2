#!/usr/bin/env python
# -*- coding: utf-8 -*-
# @Description: Watermark Pipeline


import time
from path import Path

from core.config import load_config
from core.pipeline import BatchRunner
from core.progress import ProgressStore
from iop.watermark import TextWatermark


class WatermarkPipeline:
    """
    this is a class for the batch watermark pipeline

    step:
        1. get the watermark config from yaml
        2. prepare the progress log (reset / override / bootstrap / recover)
        3. run the batch and print the summary

    usage:
        WatermarkPipeline(config_path, log_path).run(reset=False)
    """
    def __init__(self, config_path, log_path='logs.json', prompt=True) -> None:
        self.config_path = Path(config_path)
        self.spec, self.options = load_config(self.config_path)
        self.store = ProgressStore(log_path)
        self.renderer = TextWatermark(
            output_format=self.options.output_format,
            quality=self.options.quality,
        )
        self.prompt = prompt

    def run(self, reset=False):
        """
        Runs one batch.

        Returns:
            BatchReport | None: None when there was nothing to process.
        """
        self.__prepare_progress_log(reset)

        if not self.store.state.pending:
            print("No Files to Process")
            return None

        start_time = time.time()
        self.store.start_batch()
        report = BatchRunner(self.spec, self.store, self.renderer, show_progress=self.prompt).run()
        self.__print_summary(report, time.time() - start_time)
        return report

    def __prepare_progress_log(self, reset):
        if reset or self.options.reset_logs:
            self.store.reset()
        if self.options.override_files:
            self.store.override_file_list(self.options.files, self.options.extension)

        self.store.load()
        self.store.initialize_if_empty(self.__list_source_files())
        self.store.reclaim_orphan()

    def __list_source_files(self):
        source_dir = Path(self.spec.source_directory)
        if not source_dir.is_dir():
            print(f"[pipeline] Source directory '{source_dir}' not found.")
            return []
        return sorted(f.name for f in source_dir.files())

    def __print_summary(self, report, elapsed):
        print(f"Batches taken: {report.batch_count}")
        print(f"Items processed: {len(report.done)}")
        print(f"Time of last batch {elapsed:.2f} seconds")

        if report.has_errors:
            for file_id in report.errored:
                print(f"ERROR: File {file_id} was skipped, please check manually")
            if self.prompt:
                input("Press Enter to acknowledge the errors above...")
        elif self.prompt:
            input("Processing complete, no errors")
