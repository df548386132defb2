"""
Progress log for resumable batches.

The whole BatchState is written back to disk after every transition,
so a crash leaves the log in exactly one well defined state:

    pending --claim_next--> in_progress --commit_done--> done
                                 |
                                 +------commit_error--> errored

A non-empty in_progress found at startup means the previous run died
mid-file; reclaim_orphan() moves it to errored instead of retrying it.
"""

import json
import os
import time

from path import Path

from core.datatypes import BatchState, CorruptStateError, EmptyQueueError, ProgressError

_LIST_FIELDS = ('pending', 'done', 'errored')


def _normalize_extension(file_id, extension):
    """'img_01' -> 'img_01.jpg', 'img_01.jpg' unchanged"""
    ext = extension.lstrip('.')
    if file_id.split('.')[-1] != ext:
        return f"{file_id}.{ext}"
    return file_id


def state_from_dict(data):
    """
    Builds a BatchState from a decoded progress log.

    Unknown keys are ignored, missing keys get their empty default.
    Anything with the wrong shape raises CorruptStateError.
    """
    if not isinstance(data, dict):
        raise CorruptStateError(f"progress log must be an object, got {type(data).__name__}")

    state = BatchState()

    batch_count = data.get('batch_count', 0)
    if isinstance(batch_count, bool) or not isinstance(batch_count, int) or batch_count < 0:
        raise CorruptStateError(f"batch_count must be a non-negative integer, got {batch_count!r}")
    state.batch_count = batch_count

    start_time = data.get('batch_start_time', 0)
    if isinstance(start_time, bool) or not isinstance(start_time, (int, float)):
        raise CorruptStateError(f"batch_start_time must be a number, got {start_time!r}")
    state.batch_start_time = float(start_time)

    in_progress = data.get('in_progress') or ""
    if not isinstance(in_progress, str):
        raise CorruptStateError(f"in_progress must be a file name, got {in_progress!r}")
    state.in_progress = in_progress

    for name in _LIST_FIELDS:
        value = data.get(name, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise CorruptStateError(f"{name} must be a list of file names")
        setattr(state, name, list(value))

    _check_disjoint(state)
    return state


def _check_disjoint(state):
    seen = {}
    groups = [(name, getattr(state, name)) for name in _LIST_FIELDS]
    if state.in_progress:
        groups.append(('in_progress', [state.in_progress]))
    for name, items in groups:
        for item in items:
            if item in seen and seen[item] != name:
                raise CorruptStateError(f"'{item}' is listed in both {seen[item]} and {name}")
            seen[item] = name


class ProgressStore:
    """
    Durable record of batch progress backed by a JSON file.

    Every mutating method persists the full state before returning.
    Only one process may own a log at a time.

    usage:
        store = ProgressStore('logs.json')
        store.load()
        file_id = store.claim_next()
        store.commit_done(file_id)
    """
    def __init__(self, log_path):
        self.log_path = Path(os.fspath(log_path))
        self._state = BatchState()
        self.name = 'progress'

    @property
    def state(self):
        """Snapshot of the current state, safe to keep around"""
        return self._state.copy()

    # ---------- persistence ---------- #
    def load(self):
        """
        Reads the progress log. A missing log is created empty.

        Raises:
            CorruptStateError: when the log is not valid JSON or not a valid state.
        """
        if not self.log_path.exists():
            print(f"[{self.name}] No progress log at '{self.log_path}', starting a new one.")
            self._state = BatchState()
            self._write()
            return self.state

        try:
            with open(self.log_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptStateError(
                f"progress log '{self.log_path}' is not valid JSON ({e}); run with 'reset' to start over"
            ) from e
        except UnicodeDecodeError as e:
            raise CorruptStateError(f"progress log '{self.log_path}' is not UTF-8 text") from e

        self._state = state_from_dict(data)
        return self.state

    def _write(self):
        # write to a sibling and swap it in, a crash never leaves half a file
        if self.log_path.parent:
            self.log_path.parent.makedirs_p()
        tmp_path = self.log_path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(self._state.to_dict(), f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.log_path)

    # ---------- bootstrap ---------- #
    def reset(self):
        print(f"[{self.name}] Resetting progress log.")
        self._state = BatchState()
        self._write()

    def override_file_list(self, files, extension='.jpg'):
        """
        Starts over with an explicit list of files instead of a directory scan.
        Entries without the expected extension get it appended.
        """
        # "a" and "a.jpg" name the same file
        normalized = list(dict.fromkeys(_normalize_extension(str(f), extension) for f in files))
        print(f"[{self.name}] Overriding file list with {len(normalized)} file(s): {normalized}")
        self._state = BatchState(pending=normalized)
        self._write()

    def initialize_if_empty(self, file_list):
        """
        Fills pending from a directory listing when nothing is pending or done.
        Files already in errored stay there and are not listed again.
        """
        if not self._state.is_empty:
            return False
        skip = set(self._state.errored)
        skip.add(self._state.in_progress)
        self._state.pending = [f for f in file_list if f not in skip]
        self._write()
        return True

    def reclaim_orphan(self):
        """
        Moves a file left in progress by a crashed run into errored.

        Returns:
            str | None: the reclaimed file, if there was one.
        """
        orphan = self._state.in_progress
        if not orphan:
            return None
        print(f"[{self.name}] '{orphan}' was in progress when the last run stopped, marking it as errored.")
        if orphan not in self._state.errored:
            self._state.errored.append(orphan)
        self._state.in_progress = ""
        self._write()
        return orphan

    def start_batch(self):
        self._state.batch_count += 1
        self._state.batch_start_time = time.time()
        self._write()
        return self._state.batch_count

    # ---------- transitions ---------- #
    def claim_next(self):
        """Pops the tail of pending into in_progress."""
        if self._state.in_progress:
            raise ProgressError(f"'{self._state.in_progress}' is already in progress")
        if not self._state.pending:
            raise EmptyQueueError("no pending files to claim")
        self._state.in_progress = self._state.pending.pop()
        self._write()
        return self._state.in_progress

    def commit_done(self, file_id):
        if file_id != self._state.in_progress:
            raise ProgressError(f"'{file_id}' is not the file in progress ('{self._state.in_progress}')")
        self._state.done.append(file_id)
        self._state.in_progress = ""
        self._write()

    def commit_error(self, file_id):
        """Moves the file in progress, or a still pending file, into errored."""
        if file_id == self._state.in_progress:
            self._state.in_progress = ""
        elif file_id in self._state.pending:
            self._state.pending.remove(file_id)
        else:
            raise ProgressError(f"'{file_id}' is neither in progress nor pending")
        self._state.errored.append(file_id)
        self._write()
