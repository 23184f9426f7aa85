"""
Command-line interface for sentence-miner.
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import load_config
from .exceptions import ConfigError, SentenceMinerError
from .miner import SentenceMiner
from .models import SentenceEntry, TargetWord


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the sentence-miner CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"\n  [CONFIG ERROR] {e}")
        if e.line:
            print(f"                Line: {e.line}")
        return 1
    if args.database:
        config = replace(config, database=str(args.database))

    try:
        with SentenceMiner(config) as miner:
            return args.func(miner, args)
    except SentenceMinerError as e:
        print(f"\n  [ERROR] {e}")
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sentence-miner",
        description="Collect example sentences and group them into mining batches",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--database",
        type=Path,
        help="Override the database path from the configuration",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(title="commands", dest="command")

    # add-user command
    add_user_parser = subparsers.add_parser("add-user", help="Register a user")
    add_user_parser.add_argument("username", help="Unique user name")
    add_user_parser.set_defaults(func=cmd_add_user)

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Show the morphemes of a sentence",
    )
    analyze_parser.add_argument("text", help="Sentence to analyze")
    analyze_parser.set_defaults(func=cmd_analyze)

    # submit command
    submit_parser = subparsers.add_parser(
        "submit",
        help="Submit an example sentence",
    )
    submit_parser.add_argument("user", type=int, help="User ID")
    submit_parser.add_argument("text", help="Example sentence")
    submit_parser.add_argument(
        "--word",
        help="Dictionary form of the word the sentence exemplifies "
             "(default: first word of the sentence)",
    )
    submit_parser.add_argument(
        "--reading",
        help="Reading of --word, when the dictionary form is ambiguous",
    )
    submit_parser.set_defaults(func=cmd_submit)

    # pending command
    pending_parser = subparsers.add_parser(
        "pending",
        help="List pending sentences",
    )
    pending_parser.add_argument("user", type=int, help="User ID")
    pending_parser.set_defaults(func=cmd_pending)

    # discard command
    discard_parser = subparsers.add_parser(
        "discard",
        help="Delete a pending sentence",
    )
    discard_parser.add_argument("user", type=int, help="User ID")
    discard_parser.add_argument("sentence_id", type=int, help="Sentence ID")
    discard_parser.set_defaults(func=cmd_discard)

    # batch command
    batch_parser = subparsers.add_parser(
        "batch",
        help="Group pending sentences into a new mining batch",
    )
    batch_parser.add_argument("user", type=int, help="User ID")
    batch_parser.add_argument(
        "--sentence",
        type=int,
        action="append",
        dest="sentences",
        help="Only claim this sentence (repeatable)",
    )
    batch_parser.set_defaults(func=cmd_batch)

    # batches command
    batches_parser = subparsers.add_parser(
        "batches",
        help="List mining batches",
    )
    batches_parser.add_argument("user", type=int, help="User ID")
    batches_parser.set_defaults(func=cmd_batches)

    # show-batch command
    show_batch_parser = subparsers.add_parser(
        "show-batch",
        help="Show the sentences of a mining batch",
    )
    show_batch_parser.add_argument("user", type=int, help="User ID")
    show_batch_parser.add_argument("batch_id", type=int, help="Batch ID")
    show_batch_parser.set_defaults(func=cmd_show_batch)

    # words command
    words_parser = subparsers.add_parser(
        "words",
        help="List words by frequency",
    )
    words_parser.add_argument("user", type=int, help="User ID")
    words_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of words to show (default: 20)",
    )
    words_parser.add_argument(
        "--unmined",
        action="store_true",
        help="Only show words not yet mined",
    )
    words_parser.set_defaults(func=cmd_words)

    # history command
    history_parser = subparsers.add_parser(
        "history",
        help="Show pipeline events",
    )
    history_parser.add_argument("user", type=int, help="User ID")
    history_parser.add_argument(
        "--event",
        choices=["SUBMIT", "REJECT", "DISCARD", "BATCH"],
        help="Only show this kind of event",
    )
    history_parser.add_argument("--since", help="ISO timestamp lower bound")
    history_parser.set_defaults(func=cmd_history)

    return parser


def cmd_add_user(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle add-user command."""
    user_id = miner.create_user(args.username)
    print(f"Created user {args.username!r} with ID {user_id}")
    return 0


def cmd_analyze(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle analyze command."""
    morphemes = miner.analyze(args.text)
    print(f"{'Surface':<12} {'Dictionary form':<16} {'Reading':<16} {'POS'}")
    print("-" * 70)
    for m in morphemes:
        pos = ",".join(p for p in m.part_of_speech if p != "*")
        print(f"{m.surface:<12} {m.dictionary_form:<16} {m.reading:<16} {pos}")
    return 0


def cmd_submit(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle submit command."""
    if args.reading and not args.word:
        print("\n  [ERROR] --reading requires --word")
        return 1
    target = TargetWord(args.word, args.reading) if args.word else None
    sentence = miner.submit(args.user, args.text, target)
    word = miner.get_word(args.user, sentence.word_id)
    print(f"Queued sentence #{sentence.id} for {word.dictionary_form} [{word.reading}]")
    print(f"Pending: {miner.count_pending(args.user)}/{miner.config.maximum_pending_sentences}")
    return 0


def cmd_pending(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle pending command."""
    entries = miner.pending_sentences(args.user)
    if not entries:
        print("No pending sentences.")
        return 0
    print(f"\nPending sentences ({len(entries)}/{miner.config.maximum_pending_sentences}):\n")
    _print_entries(entries)
    return 0


def cmd_discard(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle discard command."""
    miner.discard_sentence(args.user, args.sentence_id)
    print(f"Discarded sentence #{args.sentence_id}")
    return 0


def cmd_batch(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle batch command."""
    batch = miner.request_batch(args.user, args.sentences)
    print(f"Created batch #{batch.id} with {len(batch.sentence_ids)} sentence(s)")
    return 0


def cmd_batches(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle batches command."""
    batches = miner.list_batches(args.user)
    if not batches:
        print("No mining batches found.")
        return 0
    print(f"{'ID':<6} {'Sentences':<10} {'Created'}")
    print("-" * 50)
    for batch in batches:
        print(f"{batch.id:<6} {len(batch.sentence_ids):<10} {batch.created_at}")
    return 0


def cmd_show_batch(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle show-batch command."""
    entries = miner.batch_sentences(args.user, args.batch_id)
    print(f"\nBatch #{args.batch_id} ({len(entries)} sentence(s)):\n")
    _print_entries(entries)
    return 0


def cmd_words(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle words command."""
    print(f"{'Word':<16} {'Reading':<16} {'Freq':<6} {'Mined'}")
    print("-" * 50)
    shown = 0
    for word in miner.frequency_rank(args.user):
        if shown >= args.limit:
            break
        if args.unmined and word.is_mined:
            continue
        mined = "yes" if word.is_mined else "no"
        print(f"{word.dictionary_form:<16} {word.reading:<16} {word.frequency:<6} {mined}")
        shown += 1
    return 0


def cmd_history(miner: SentenceMiner, args: argparse.Namespace) -> int:
    """Handle history command."""
    events = miner.get_history(args.user, event=args.event, since=args.since)
    if not events:
        print("No events found.")
        return 0
    for event in events:
        entity = f"#{event.entity_id}" if event.entity_id is not None else ""
        print(f"{event.timestamp}  {event.event:<8} {entity:<8} {event.detail or ''}")
    return 0


def _print_entries(entries: List[SentenceEntry]) -> None:
    for entry in entries:
        word = entry.word
        print(f"  #{entry.sentence.id:<5} {word.dictionary_form} [{word.reading}] "
              f"(seen {word.frequency}x, corpus rank {entry.frequency_rank})")
        print(f"         {entry.sentence.text}")


if __name__ == "__main__":
    sys.exit(main())
