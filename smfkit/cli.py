from __future__ import annotations
import argparse
import logging
import sys
import traceback
import typing
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
import dotenv
import mido
from tqdm.auto import tqdm
from .config import get_config
from .events import Event, MetaEvent, SysexEvent, ChannelEvent
from .exceptions import MidiError
from .file import Midifile, MIDI_SUFFIXES, decode_file
from .message import ChannelEventType
from .meta import MetaEventType, key_signature_name


def describe(event: Event) -> str:
    """One line description of an event"""
    if isinstance(event, MetaEvent):
        fields = " ".join(f"{k}={v!r}" for k, v in event.props.items())
        if event.meta_type == MetaEventType.KEY_SIGNATURE:
            fields += f" ({key_signature_name(event.note, event.major)})"
        return f"{event.meta_type.name} {fields}".rstrip()
    if isinstance(event, SysexEvent):
        return f"SYSEX 0x{event.status:X} {event.data.hex(' ')}".rstrip()
    assert isinstance(event, ChannelEvent)
    fields = " ".join(f"{k}={v}" for k, v in event.props.items())
    return f"{event.channel_type.name} channel={event.channel} {fields}"


def dump(path: Path):
    midifile = Midifile.from_path(path)
    print(f"File type: {midifile.file_type.name} ({int(midifile.file_type)})")
    print(f"Ticks per beat: {midifile.ticks_per_beat}")
    print(f"Tracks: {midifile.header.track_count}")
    print(f"Length: {midifile.length:.3f} seconds")
    for i, track in enumerate(midifile.tracks):
        print(f"\nTrack {i} ({len(track)} events)")
        for event in track:
            print(f"{event.delay:>8} {describe(event)}")


def count_notes(midifile: Midifile) -> int:
    return sum(
        1
        for track in midifile.tracks
        for event in track
        if isinstance(event, ChannelEvent) and event.channel_type == ChannelEventType.NOTE_ON and not event.is_note_off
    )


def check_file(path: Path, compare_mido: bool = False) -> tuple[Path, str | None]:
    """Decodes, re-encodes and decodes again a file. Returns the path and an error message if anything went wrong"""
    try:
        midifile = Midifile.from_path(path)
        again = decode_file(midifile.get_data())
        if again != midifile:
            return path, "decoded file changed after re-encoding"
        if compare_mido:
            mid = mido.MidiFile(path)
            expected = sum(1 for track in mid.tracks for msg in track if msg.type == 'note_on' and msg.velocity > 0)
            found = count_notes(midifile)
            if expected != found:
                return path, f"found {found} notes but mido found {expected}"
    except MidiError as e:
        return path, f"{type(e).__name__}: {e}"
    except Exception as e:
        return path, f"Error processing file {path}: {e}\n{traceback.format_exc()}"
    return path, None


def iterate_midis(paths: typing.Iterable[Path]) -> typing.Iterator[Path]:
    """Yields the given files and every MIDI file under the given directories"""
    for path in paths:
        if path.is_dir():
            yield from sorted(p for p in path.rglob("*") if p.suffix.lower() in MIDI_SUFFIXES)
        else:
            yield path


def check(paths: list[Path], n_workers: int = 4, compare_mido: bool = False) -> int:
    """Round trips every file and returns the number of failures"""
    file_paths = list(iterate_midis(paths))
    print(f"Found {len(file_paths)} files to check")
    errors_count = 0
    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        results = executor.map(lambda p: check_file(p, compare_mido), file_paths)
        with tqdm(total=len(file_paths), desc="Checking files", unit="files") as pbar:
            for path, error in results:
                if error is not None:
                    errors_count += 1
                    tqdm.write(f"{path}: {error}")
                pbar.update(1)
                pbar.set_postfix({'errors': errors_count})
    print(f"Checked {len(file_paths)} files, {errors_count} failed")
    return errors_count


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="smfkit", description="Inspect and validate Standard MIDI files.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level, like DEBUG or INFO")
    subparsers = parser.add_subparsers(dest="command", required=True)

    dump_parser = subparsers.add_parser("dump", help="Print the header and every event of a MIDI file")
    dump_parser.add_argument("file", type=Path)

    check_parser = subparsers.add_parser("check", help="Decode and re-encode MIDI files, reporting failures")
    check_parser.add_argument("paths", type=Path, nargs="+", help="MIDI files or directories to search")
    check_parser.add_argument("--workers", type=int, default=4)
    check_parser.add_argument("--compare-mido", action="store_true", help="Also compare note counts against mido")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    dotenv.load_dotenv()
    get_config.cache_clear()

    if args.command == "dump":
        try:
            dump(args.file)
        except (MidiError, OSError) as e:
            print(f"Error processing {args.file}: {e}", file=sys.stderr)
            return 1
        return 0
    return 1 if check(args.paths, n_workers=args.workers, compare_mido=args.compare_mido) else 0


if __name__ == "__main__":
    sys.exit(main())
