# @Description: run the batch watermark

import argparse
import os
import sys

from path import Path

from core.datatypes import ConfigInvalidError, ConfigMissingError, CorruptStateError
from watermark_pipeline import WatermarkPipeline


def build_parser():
    root_path = Path(os.path.abspath(__file__)).parent
    parser = argparse.ArgumentParser(
        description="Stamp a text watermark on every image of a folder, resuming where the last run stopped."
    )
    parser.add_argument(
        'command',
        nargs='?',
        choices=['reset'],
        help="'reset' clears the progress log before processing",
    )
    parser.add_argument('-c', '--config', default=root_path / 'config' / 'watermark_config.yaml',
                        help="watermark config (default config/watermark_config.yaml)")
    parser.add_argument('-l', '--log', default='logs.json',
                        help="progress log (default ./logs.json)")
    parser.add_argument('--no-prompt', action='store_true',
                        help="do not wait for Enter at the end, and hide the progress bar")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        pipeline = WatermarkPipeline(args.config, args.log, prompt=not args.no_prompt)
        pipeline.run(reset=args.command == 'reset')
    except (ConfigMissingError, ConfigInvalidError, CorruptStateError) as e:
        print(f"ERROR: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
