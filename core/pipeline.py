"""
pipeline - The batch runner driving one image at a time through
claim -> probe -> place -> render -> commit.
"""

import time

from path import Path
from PIL import Image
from tqdm import tqdm

from core.datatypes import BatchReport, RenderError, SourceFileMissingError
from iop.geometry import completion_percent, compute_placement


class BatchRunner:
    """
    Per-file state machine: pending -> in_progress -> done | errored.

    Exactly one file is in flight at a time and its outcome is committed to
    the progress store before the next one is claimed. Files are taken from
    the tail of the pending list.

    usage:
        report = BatchRunner(spec, store, TextWatermark()).run()
    """
    def __init__(self, spec, store, renderer, show_progress=True):
        self.spec = spec
        self.store = store
        self.renderer = renderer
        self.show_progress = show_progress
        self.source_dir = Path(spec.source_directory)
        self.destination_dir = Path(spec.destination_directory)

    def run(self):
        """
        Processes every pending file.

        Returns:
            BatchReport: counts for this run plus the done / errored lists.
        """
        start_time = time.time()
        processed = 0
        state = self.store.state
        total = len(state.pending) + len(state.done)

        with tqdm(total=total, initial=len(state.done), desc="Watermarking",
                  unit="img", disable=not self.show_progress) as bar:
            while self.store.state.pending:
                file_id = self.store.claim_next()
                if self._process_one(file_id):
                    processed += 1
                bar.update(1)

        state = self.store.state
        return BatchReport(
            batch_count=state.batch_count,
            processed=processed,
            elapsed=time.time() - start_time,
            done=list(state.done),
            errored=list(state.errored),
        )

    def _process_one(self, file_id):
        """
        Runs one claimed file to completion.

        A missing source or any failure while rendering commits the file to
        errored; the batch always carries on with the next file.
        """
        source_path = self.source_dir / file_id
        destination_path = self.destination_dir / file_id

        try:
            if not source_path.is_file():
                raise SourceFileMissingError(f"file {source_path} doesn't exist")
            dims = self.renderer.probe(source_path)
            placement = compute_placement(self.spec, dims, self.renderer.measure)
            self.renderer.render(source_path, destination_path, self.spec, placement)
        except SourceFileMissingError as e:
            tqdm.write(f"ERROR, {e}\n")
            self.store.commit_error(file_id)
            return False
        except (RenderError, OSError, ValueError, Image.DecompressionBombError) as e:
            tqdm.write(f"ERROR, could not process {file_id}: {e}\n")
            self.store.commit_error(file_id)
            return False

        self.store.commit_done(file_id)
        state = self.store.state
        tqdm.write(f"{file_id} processed")
        tqdm.write(f"{completion_percent(len(state.done), len(state.pending))}% complete\n")
        return True
